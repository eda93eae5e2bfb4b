"""可替换的随机数来源

密钥生成、签名和加密都通过RandomSource.fill()获取随机数据，调用方可以注入自己的实现（例如硬件随机数发生器）。
缺省使用操作系统提供的密码学安全随机数；平台没有安全随机数时，只有显式允许才会退化为伪随机数，并记录警告。
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging
import os
import random
import secrets
import threading

from .commons import CryptoError, ValidationError

logger = logging.getLogger(__name__)

SCALAR_SAMPLING_LIMIT = 128
"""拒绝采样生成[1, n-1]范围内随机数时的最大尝试次数"""


class RandomSource(ABC):
    """随机数来源接口，实现应当保证每次调用返回互相独立、不可预测的数据；多线程共享时由实现负责线程安全"""

    @abstractmethod
    def fill(self, buffer: bytearray) -> None:
        """用随机数据填满buffer"""
        raise NotImplementedError()

    def random_bytes(self, length: int) -> bytes:
        buffer = bytearray(length)
        self.fill(buffer)
        return bytes(buffer)


class SystemRandomSource(RandomSource):
    """操作系统提供的密码学安全随机数（os.urandom）"""

    def fill(self, buffer: bytearray) -> None:
        buffer[:] = secrets.token_bytes(len(buffer))


class DegradedRandomSource(RandomSource):
    """没有安全随机数来源时的退化方案，基于random模块的伪随机数，不具备密码学安全性"""

    def __init__(self, seed: Optional[int] = None):
        logger.warning('使用非密码学安全的随机数来源/Using a NON-cryptographic random source, '
                       'keys and signatures produced with it are not secure')
        self._random = random.Random(seed)
        self._lock = threading.Lock()

    def fill(self, buffer: bytearray) -> None:
        with self._lock:
            buffer[:] = self._random.randbytes(len(buffer))


_SYSTEM_RANDOM_SOURCE = SystemRandomSource()


def default_random_source(allow_degraded: bool = False) -> RandomSource:
    """获取缺省的随机数来源

    :param allow_degraded: 平台没有安全随机数来源时是否允许退化为伪随机数
    """
    try:
        os.urandom(1)
    except NotImplementedError as e:
        if not allow_degraded:
            raise CryptoError('平台没有密码学安全的随机数来源/No secure random source available') from e
        return DegradedRandomSource()
    return _SYSTEM_RANDOM_SOURCE


def random_scalar(n: int, random_source: Optional[RandomSource] = None) -> int:
    """从[1, n-1]中均匀地选取随机整数

    按n-1的比特长度取随机数，超出范围的丢弃重取（拒绝采样）。
    """
    if n <= 2:
        raise ValidationError(f'上界{n}过小/Upper bound {n} is too small')
    source = random_source if random_source is not None else default_random_source()
    bit_len = (n - 1).bit_length()
    byte_len = (bit_len + 7) // 8
    mask = (1 << bit_len) - 1
    buffer = bytearray(byte_len)
    for _ in range(SCALAR_SAMPLING_LIMIT):
        source.fill(buffer)
        k = int.from_bytes(buffer, byteorder='big', signed=False) & mask
        if 1 <= k < n:
            return k
    raise CryptoError(f'随机数来源连续{SCALAR_SAMPLING_LIMIT}次未能生成有效的随机数'
                      f'/Random source failed to produce a scalar in {SCALAR_SAMPLING_LIMIT} attempts')
