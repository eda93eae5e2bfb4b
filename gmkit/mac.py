from typing import Callable, Union

from .calculation import mul_gf_2_128
from .commons import BlockCipherAlgorithm, ValidationError

ZEROS_128 = b'\x00' * 16

IPAD_BYTE = 0x36
OPAD_BYTE = 0x5C


def hmac(hash_function: Callable[[Union[bytes, bytearray, memoryview]], bytes], hash_block_byte_length: int,
         key: Union[bytes, bytearray, memoryview], message: Union[bytes, bytearray, memoryview]) -> bytes:
    """计算HMAC的函数

    GB/T 15852.2-2012 / RFC 2104
    :param hash_function: 哈希/杂凑函数
    :param hash_block_byte_length: 哈希/杂凑函数的压缩函数处理块长度（按字节），SM3和SHA-256为64字节，SHA-384和SHA-512为128字节
    :param key: 验证密钥，不应短于哈希/杂凑函数的输出长度
    :param message: 要生成验证码的消息值
    :return: HMAC验证码
    """
    buffer = bytearray()
    if len(key) > hash_block_byte_length:
        buffer.extend(hash_function(key))
    else:
        buffer.extend(key)

    if len(buffer) < hash_block_byte_length:
        buffer.extend(b'\x00' * (hash_block_byte_length - len(buffer)))

    key1 = bytes(b ^ IPAD_BYTE for b in buffer)
    key2 = bytes(b ^ OPAD_BYTE for b in buffer)

    buffer.clear()
    buffer.extend(key1)
    buffer.extend(message)
    intermediate_hash = hash_function(buffer)
    buffer.clear()
    buffer.extend(key2)
    buffer.extend(intermediate_hash)
    return hash_function(buffer)


def uint128_to_bytes(n: int) -> bytes:
    """128比特无符号整数转化为字节串"""
    return n.to_bytes(length=16, byteorder='big', signed=False)


def bytes_to_uint128(b: Union[bytes, bytearray, memoryview]) -> int:
    """字节串转化为128比特无符号整数，不足16字节时右侧补0"""
    assert len(b) <= 16
    return int.from_bytes(b, byteorder='big', signed=False) << (8 * (16 - len(b)))


class GHash:
    """辅助函数GHASH的流式实现

    GB/T 15852.3-2019 6.5.3，GHASH_H(W, Z)
    W（GCM中的附加数据）在构造时一次性给出，Z（GCM中的密文）可以分多次输入。
    """
    def __init__(self, key_h: Union[bytes, bytearray, memoryview], w: Union[bytes, bytearray, memoryview] = b''):
        if len(key_h) != 16:
            raise ValidationError('GHASH的密钥H必须为16字节/Hash subkey H should be 16 bytes')
        self._h = bytes_to_uint128(key_h)
        self._x = 0
        self._w_len = len(w)
        self._z_len = 0
        self._buffer = bytearray()

        self._absorb(w)
        self._absorb_tail(bytearray(w[len(w) - len(w) % 16:]))

    def _absorb(self, octets: Union[bytes, bytearray, memoryview]):
        """处理全部完整的分组"""
        view = memoryview(octets)
        full = len(view) - len(view) % 16
        for i in range(0, full, 16):
            self._x = mul_gf_2_128(self._x ^ bytes_to_uint128(view[i:i + 16]), self._h)
        view.release()
        return full

    def _absorb_tail(self, tail: bytearray):
        """处理不足一个分组的尾部，右侧补0"""
        if len(tail) > 0:
            self._x = mul_gf_2_128(self._x ^ bytes_to_uint128(tail), self._h)

    def update(self, z: Union[bytes, bytearray, memoryview]) -> 'GHash':
        self._z_len += len(z)
        self._buffer.extend(z)
        full = self._absorb(self._buffer)
        del self._buffer[:full]
        return self

    def finalize(self) -> int:
        self._absorb_tail(self._buffer)
        self._buffer.clear()
        last_block = ((self._w_len * 8) << 64) | (self._z_len * 8)
        return mul_gf_2_128(self._x ^ last_block, self._h)


def ghash(key_h: Union[bytes, bytearray, memoryview],
          w: Union[bytes, bytearray, memoryview],
          z: Union[bytes, bytearray, memoryview]) -> int:
    """辅助函数GHASH

    GB/T 15852.3-2019 6.5.3
    :param key_h: 长度为128bit的分组H（密钥）
    :param w: 任意长度的比特串W
    :param z: 任意长度的比特串Z
    """
    return GHash(key_h, w).update(z).finalize()


def gcm_pre_counter_block(key_h: Union[bytes, bytearray, memoryview], n: Union[bytes, bytearray, memoryview]) -> bytes:
    """由临时值（IV）形成初始计数器分组J0/Y0：12字节时直接拼接0x00000001，否则经过GHASH"""
    if len(n) == 0:
        raise ValidationError('临时值（IV）不能为空/Nonce must not be empty')
    if len(n) == 12:
        return bytes(n) + b'\x00\x00\x00\x01'
    return uint128_to_bytes(ghash(key_h, b'', n))


def gmac(algorithm: BlockCipherAlgorithm,
         message: Union[bytes, bytearray, memoryview], n: Union[bytes, bytearray, memoryview]) -> bytes:
    """计算GMAC的函数

    GB/T 15852.3-2019 6.5
    :param algorithm: 128bit分组加密算法（已绑定密钥）
    :param message: 要生成验证码的消息值
    :param n: 发送方和接收方约定的临时值
    """
    if algorithm.block_size != 128:
        raise ValidationError('GMAC只支持128比特分组密码/GMAC requires a 128-bit block cipher')
    key_h = algorithm.encrypt_block(ZEROS_128)
    h = ghash(key_h, message, b'')
    y_0 = gcm_pre_counter_block(key_h, n)
    enc_y0 = algorithm.encrypt_block(y_0)
    return uint128_to_bytes(h ^ bytes_to_uint128(enc_y0))
