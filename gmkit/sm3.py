from typing import Union

from .commons import MerkleDamgardHash, ValidationError
from .mac import hmac
from .calculation import rls_32, mod_adds_32

# GB/T 32905-2016 4.1 初始值
_SM3_IV = (0x7380166f, 0x4914b2b9, 0x172442d7, 0xda8a0600, 0xa96f30bc, 0x163138aa, 0xe38dee4d, 0xb0fb0e4e)

# GB/T 32905-2016 4.2 常量，预先按j循环左移
_SM3_TJ_ROTATED = tuple(rls_32(0x79cc4519 if j < 16 else 0x7a879d8a, j % 32) for j in range(0, 64))


def _sm3_ff_j(x: int, y: int, z: int, j: int):
    """GB/T 32905-2016 4.3 布尔函数FF_j"""
    if 0 <= j < 16:
        ret = x ^ y ^ z
    elif 16 <= j < 64:
        ret = (x & y) | (x & z) | (y & z)
    else:
        raise ValueError(f"j = {j}")
    return ret


def _sm3_gg_j(x: int, y: int, z: int, j):
    """GB/T 32905-2016 4.3 布尔函数GG_j"""
    if 0 <= j < 16:
        ret = x ^ y ^ z
    elif 16 <= j < 64:
        ret = (x & y) | ((~ x) & z)
    else:
        raise ValueError(f"j = {j}")
    return ret


def _sm3_p0(x: int):
    """GB/T 32905-2016 4.4 置换函数P0"""
    return x ^ rls_32(x, 9) ^ rls_32(x, 17)


def _sm3_p1(x: int):
    """GB/T 32905-2016 4.4 置换函数P1"""
    return x ^ rls_32(x, 15) ^ rls_32(x, 23)


class SM3Hash(MerkleDamgardHash):
    """SM3杂凑算法，GB/T 32905-2016

    典型使用方式：
    sm3 = SM3Hash()
    sm3.update(part_1)
    sm3.update(part_2)
    digest = sm3.finalize()
    """
    BLOCK_BYTE_LENGTH = 64
    BLOCK_SIZE = BLOCK_BYTE_LENGTH * 8
    DIGEST_BYTE_LENGTH = 32
    DIGEST_SIZE = DIGEST_BYTE_LENGTH * 8

    def __init__(self):
        self._w = [0] * 68
        self._w_ = [0] * 64
        super().__init__()

    def _initial_value(self) -> tuple:
        return _SM3_IV

    def _expand(self, block_in: memoryview):
        """消息扩展函数

        GB/T 32905-2016 5.3.2
        :param block_in: 输入的64字节消息
        :return: 返回的w和w'，分别为68个32bit整数和64个32bit整数，用于CF压缩函数
        """
        w = self._w
        for j in range(16):
            w[j] = int.from_bytes(block_in[4 * j:4 * j + 4], byteorder='big', signed=False)

        for j in range(16, 68):
            w[j] = _sm3_p1(w[j - 16] ^ w[j - 9] ^ rls_32(w[j - 3], 15)) ^ rls_32(w[j - 13], 7) ^ w[j - 6]

        w_ = self._w_
        for j in range(0, 64):
            w_[j] = w[j] ^ w[j + 4]

    def _compress(self, block_in: memoryview):
        """CF压缩函数：GB/T 32905-2016 5.3.3

        v_i: 迭代压缩输入32 bytes（256 bits）
        b_i: 消息分组输入64 bytes（512 bits）
        """
        self._expand(block_in)

        a, b, c, d, e, f, g, h = self._v
        for j in range(0, 64):
            ss1 = rls_32(mod_adds_32(rls_32(a, 12), e, _SM3_TJ_ROTATED[j]), 7)
            ss2 = ss1 ^ rls_32(a, 12)
            tt1 = mod_adds_32(_sm3_ff_j(a, b, c, j), d, ss2, self._w_[j])
            tt2 = mod_adds_32(_sm3_gg_j(e, f, g, j), h, ss1, self._w[j])
            d = c
            c = rls_32(b, 9)
            b = a
            a = tt1
            h = g
            g = rls_32(f, 19)
            f = e
            e = _sm3_p0(tt2)
        self._v = [v ^ n for v, n in zip(self._v, (a, b, c, d, e, f, g, h))]

    def _output(self) -> bytes:
        result = bytearray()
        for n in self._v:
            result.extend(n.to_bytes(4, byteorder='big', signed=False))
        return bytes(result)


SM3_BLOCK_BYTE_LENGTH = SM3Hash.BLOCK_BYTE_LENGTH
SM3_OUTPUT_BYTE_LENGTH = SM3Hash.DIGEST_BYTE_LENGTH


def sm3_hash(message: Union[bytes, bytearray, memoryview]) -> bytes:
    return SM3Hash().update(message).finalize()


def sm3_hmac(key: Union[bytes, bytearray, memoryview], message: Union[bytes, bytearray, memoryview]) -> bytes:
    return hmac(sm3_hash, SM3_BLOCK_BYTE_LENGTH, key, message)


def sm3_kdf(data: Union[bytes, bytearray, memoryview], m_len: int) -> bytes:
    """SM3密钥派生函数

    GB/T 32918.4-2016 5.4.3
    :param data: 比特串Z
    :param m_len: 要派生出的密钥字节数
    :return: 派生出的密钥，计数器从1开始，按32比特大端拼接在Z之后
    """
    if m_len < 0:
        raise ValidationError(f'派生密钥长度不能为负数/Derived key length must not be negative: {m_len}')
    res = bytearray()
    buffer = bytearray(data)
    dbl = len(buffer)

    # 以SM3的输出长度（256 bits=32 bytes）分块
    for ctr in range(1, (m_len + SM3_OUTPUT_BYTE_LENGTH - 1) // SM3_OUTPUT_BYTE_LENGTH + 1):
        del buffer[dbl:]
        buffer.extend(ctr.to_bytes(length=4, byteorder='big', signed=False))
        res.extend(sm3_hash(buffer))

    return bytes(res[0:m_len])
