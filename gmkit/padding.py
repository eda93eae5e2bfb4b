from typing import Union, Optional
import logging

from .commons import Codec, ValidationError
from .constants import PaddingMode, parse_option

logger = logging.getLogger(__name__)


class PaddingException(ValidationError):

    def __init__(self, *args):
        super().__init__(*args)


class PKCS7Padding(Codec):
    """PKCS#7填充方法类。

    与GB/T 17964-2021 C.2相同。填充时补足到分组长度的整数倍，每个填充字节的值等于填充长度，
    数据恰好为整数倍时补一个完整分组；去除填充时检查全部填充字节。
    """

    def __init__(self, block_size: int, mode_padding: bool):
        """
        :param block_size: 分组长度（比特）
        :param mode_padding: True表示填充，False表示去除填充
        """
        super().__init__()
        if not (0 < block_size < 2048):
            raise PaddingException('分组大小必须大于0小于2048/Block size should be between 0 and 2048 exclusive')
        if block_size % 8 != 0:
            raise PaddingException('分组大小必须为8的倍数/Block size should be a multiple of 8')
        self._block_size = block_size
        self._block_byte_len = block_size // 8
        self._buffer = bytearray()
        self._mode_padding = mode_padding

    def _process_block(self) -> bytes:
        buffer_byte_len = len(self._buffer)
        if buffer_byte_len == 0:
            return b''

        #  缓冲区超过一个分组长度时，保留尾部不足或刚好一个分组长度的部分，输出前面的完整分组部分
        out_byte_len = ((buffer_byte_len - 1) // self._block_byte_len) * self._block_byte_len
        out_octets = bytes(memoryview(self._buffer)[0:out_byte_len])
        del self._buffer[0:out_byte_len]
        return out_octets

    def update(self, in_octets: Union[bytes, bytearray, memoryview]) -> bytes:
        self._buffer.extend(in_octets)
        return self._process_block()

    def finalize(self) -> bytes:
        buffer_byte_len = len(self._buffer)
        assert buffer_byte_len <= self._block_byte_len
        if self._mode_padding:
            padding_byte_len = self._block_byte_len - buffer_byte_len
            if padding_byte_len == 0:
                padding_byte_len = self._block_byte_len
            self._buffer.extend([padding_byte_len] * padding_byte_len)
            out_octets = bytes(self._buffer)
            self._buffer.clear()
            return out_octets
        else:
            if buffer_byte_len != self._block_byte_len:
                raise PaddingException("经过填充的数据长度不是分组长度的整数倍"
                                       "/Length of padded data is not a multiple of block size")
            padding_len = self._buffer[-1]
            if not (0 < padding_len <= self._block_byte_len):
                raise PaddingException("填充数据格式错误/Padded data is mal-formatted.")
            for i in range(-padding_len, 0):
                if self._buffer[i] != padding_len:
                    raise PaddingException("填充数据格式错误/Padded data is mal-formatted.")
            out_octets = bytes(self._buffer[0:-padding_len])
            self._buffer.clear()
            return out_octets


def pkcs7_pad(data: Union[bytes, bytearray, memoryview], block_size: int = 128) -> bytes:
    """PKCS#7数据填充"""
    padding = PKCS7Padding(block_size, True)
    out_octets = bytearray(padding.update(data))
    out_octets.extend(padding.finalize())
    return bytes(out_octets)


def pkcs7_unpad(data: Union[bytes, bytearray, memoryview], block_size: int = 128) -> bytes:
    """PKCS#7数据反填充"""
    padding = PKCS7Padding(block_size, False)
    out_octets = bytearray(padding.update(data))
    out_octets.extend(padding.finalize())
    return bytes(out_octets)


def get_padding(padding_name: Union[PaddingMode, str, None], block_size: int, mode_padding: bool
                ) -> Optional[Codec]:
    """根据名称获取填充方法，NONE（或None）表示不填充，返回None"""
    padding_mode = parse_option(PaddingMode, padding_name)
    logger.debug('填充方式: %s', padding_mode.name)
    if padding_mode is PaddingMode.NONE:
        return None
    elif padding_mode is PaddingMode.PKCS7:
        return PKCS7Padding(block_size=block_size, mode_padding=mode_padding)
    raise PaddingException(f'未知的填充方法/Unknown padding: {padding_name}')
