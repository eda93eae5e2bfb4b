"""GCM模式的函数式接口

分组加密函数以参数形式传入（明文分组 -> 密文分组），因此也可以用于AES等其他128比特分组密码。
流式处理请使用mode.GCM。
"""
from typing import Callable, Optional, Tuple, Union
import hmac as _hmac
import logging

from .calculation import uint_incr
from .commons import BlockCipherAlgorithm
from .mac import uint128_to_bytes, bytes_to_uint128, ZEROS_128, ghash, gcm_pre_counter_block

logger = logging.getLogger(__name__)

BlockCipher = Union[Callable[[bytes], bytes], BlockCipherAlgorithm]


def _as_function(cipher: BlockCipher) -> Callable[[bytes], bytes]:
    if isinstance(cipher, BlockCipherAlgorithm):
        return cipher.encrypt_block
    return cipher


def _gctr(ciph: Callable[[bytes], bytes], icb: bytes, message: Union[bytes, bytearray, memoryview]) -> bytes:
    """GCTR函数，NIST SP 800-38D 6.5"""
    lm = len(message)
    if lm == 0:
        return b''
    message = message if isinstance(message, memoryview) else memoryview(message)

    cb = bytearray(icb)
    buffer = bytearray()
    for begin in range(0, lm, 16):
        block = message[begin:begin + 16]
        ek_cb = ciph(bytes(cb))
        masked = uint128_to_bytes(bytes_to_uint128(ek_cb) ^ bytes_to_uint128(block))
        buffer.extend(masked[0:len(block)])
        uint_incr(cb, 4)
    return bytes(buffer)


def _gcm_cipher(ciph: Callable[[bytes], bytes], iv, message) -> Tuple[bytes, bytes, bytes]:
    key_h = ciph(ZEROS_128)
    j0 = gcm_pre_counter_block(key_h, iv)
    icb = bytearray(j0)
    uint_incr(icb, 4)
    return key_h, j0, _gctr(ciph, bytes(icb), message)


def gcm_encrypt(cipher: BlockCipher, message: Union[bytes, bytearray, memoryview],
                iv: Union[bytes, bytearray, memoryview], auth_data: Union[bytes, bytearray, memoryview] = b''
                ) -> Tuple[bytes, bytes]:
    """GCM加密

    :param cipher: 已绑定密钥的分组加密函数或分组密码算法对象
    :param message: 明文
    :param iv: 初始向量，推荐12字节
    :param auth_data: 附加鉴别数据
    :return: (密文, 16字节标签)
    """
    ciph = _as_function(cipher)
    key_h, j0, c = _gcm_cipher(ciph, iv, message)
    s = uint128_to_bytes(ghash(key_h, auth_data, c))
    t = _gctr(ciph, j0, s)
    return c, t


def gcm_decrypt(cipher: BlockCipher, iv: Union[bytes, bytearray, memoryview],
                auth_data: Union[bytes, bytearray, memoryview], cipher_text: Union[bytes, bytearray, memoryview],
                auth_tag: Union[bytes, bytearray, memoryview]) -> Optional[bytes]:
    """GCM解密，标签验证失败时返回None

    :return: 明文，或者None（标签不符）
    """
    ciph = _as_function(cipher)
    key_h = ciph(ZEROS_128)
    j0 = gcm_pre_counter_block(key_h, iv)
    s = uint128_to_bytes(ghash(key_h, auth_data, cipher_text))
    t = _gctr(ciph, j0, s)[0:len(auth_tag)]
    if len(auth_tag) == 0 or not _hmac.compare_digest(t, bytes(auth_tag)):
        logger.debug('GCM tag mismatch: %s', bytes(auth_tag).hex())
        return None
    icb = bytearray(j0)
    uint_incr(icb, 4)
    return _gctr(ciph, bytes(icb), cipher_text)
