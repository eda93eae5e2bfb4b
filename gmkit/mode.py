from typing import Union, Optional, Tuple
from abc import ABC, abstractmethod
import hmac as _hmac
import logging

from .calculation import xor_on_bytes, uint_incr
from .commons import Codec, BlockCipherAlgorithm, ValidationError, AuthenticationFailure
from .constants import CipherMode, parse_option
from .mac import GHash, ZEROS_128, gcm_pre_counter_block

logger = logging.getLogger(__name__)


class Mode(ABC):
    def __init__(self, algorithm: Optional[BlockCipherAlgorithm] = None):
        self._algorithm = None
        self._block_size = None
        self._block_byte_len = None
        if algorithm is not None:
            self.set_algorithm(algorithm)

    @property
    def block_byte_len(self):
        return self._block_byte_len

    @property
    def algorithm(self) -> BlockCipherAlgorithm:
        return self._algorithm

    def set_algorithm(self, algorithm: BlockCipherAlgorithm):
        """设置要使用的分组密码算法

        :param algorithm: BlockCipherAlgorithm 分组密码算法
        """
        self._algorithm = algorithm
        self._block_size = self._algorithm.block_size
        if self._block_size % 8 != 0:
            raise ValidationError('分组大小必须为8的倍数/Block size should be a multiple of 8')
        self._block_byte_len = self._block_size // 8

    @abstractmethod
    def encryptor(self) -> Codec:
        raise NotImplementedError()

    @abstractmethod
    def decryptor(self) -> Codec:
        raise NotImplementedError()


class IVMode(Mode, ABC):
    """使用初始向量IV的工作模式，IV长度必须与分组长度相同"""
    def __init__(self, iv: Union[bytes, bytearray, memoryview], algorithm: Optional[BlockCipherAlgorithm] = None):
        self._iv = bytes(iv)
        super().__init__(algorithm)

    def set_algorithm(self, algorithm: BlockCipherAlgorithm):
        if len(self._iv) * 8 != algorithm.block_size:
            raise ValidationError('初始向量IV必须为分组长度/Initial vector should be of block size, '
                                  f'got {len(self._iv)} bytes')
        super().set_algorithm(algorithm)


class BlockwiseInnerCodec(Codec, ABC):
    """EBC/CBC/CTR等分组工作模式内部使用的加解密工具类"""
    def __init__(self, mode: Mode):
        self._mode = mode
        self._buffer = bytearray()

    @abstractmethod
    def _process_block(self, in_block: Union[bytes, bytearray, memoryview]) -> bytes:
        """处理单个分组的函数

        EBC/CBC加密解密实现不同、CTR加密解密实现相同
        :param in_block: 输入分组
        """
        raise NotImplementedError()

    def _process_buffer(self) -> bytes:
        """处理缓冲区中输入数据的函数"""
        out_octets = bytearray()
        buffer_len = len(self._buffer)
        block_byte_len = self._mode.block_byte_len
        if buffer_len >= block_byte_len:
            in_octets = memoryview(self._buffer)
            m, n = 0, block_byte_len
            while n <= buffer_len:  # 处理每一个完整的分组
                out_octets.extend(self._process_block(in_octets[m:n]))
                m = n
                n = m + block_byte_len
            in_octets.release()
            del self._buffer[:m]
        return bytes(out_octets)

    def update(self, in_octets: Union[bytes, bytearray, memoryview]) -> bytes:
        self._buffer.extend(in_octets)
        return self._process_buffer()

    def finalize(self) -> bytes:
        if len(self._buffer) != 0:
            raise ValidationError('数据长度不是分组长度的整数倍，需要填充/'
                                  'Length of data is not a multiple of block size, so padding is required')
        return b''


class ECB(Mode):
    """电码本（ECB）模式，规定于GB/T 17964-2021 5

    相同密钥下相同的明文分组总是得到相同的密文分组。
    """
    def __init__(self, algorithm: Optional[BlockCipherAlgorithm] = None):
        """初始化函数

        :param algorithm: 分组密码算法
        """
        super().__init__(algorithm)

    class Encryptor(BlockwiseInnerCodec):
        def _process_block(self, in_block: Union[bytes, bytearray, memoryview]) -> bytes:
            return self._mode.algorithm.encrypt_block(in_block)

    class Decryptor(BlockwiseInnerCodec):
        def _process_block(self, in_block: Union[bytes, bytearray, memoryview]) -> bytes:
            return self._mode.algorithm.decrypt_block(in_block)

    def encryptor(self) -> Encryptor:
        return ECB.Encryptor(self)

    def decryptor(self) -> Decryptor:
        return ECB.Decryptor(self)


class CBC(IVMode):
    """密文分组链接（CBC）模式，规定于GB/T 17964-2021 6"""
    def __init__(self, iv: Union[bytes, bytearray, memoryview], algorithm: Optional[BlockCipherAlgorithm] = None):
        """初始化函数

        :param iv: 初始向量IV，由加解密双方约定或者由加密方提供给解密方
        :param algorithm: 分组密码算法
        """
        super().__init__(iv, algorithm)

    class Encryptor(BlockwiseInnerCodec):
        def __init__(self, mode: 'CBC'):
            super().__init__(mode)
            self._last_cipher_block = mode._iv

        def _process_block(self, in_block: Union[bytes, bytearray, memoryview]) -> bytes:
            to_encrypt = xor_on_bytes(self._last_cipher_block, in_block)  # 输入分组与上一组密文异或
            self._last_cipher_block = self._mode.algorithm.encrypt_block(to_encrypt)  # 加密形成密文，并保存用于下一组处理
            return self._last_cipher_block

    class Decryptor(BlockwiseInnerCodec):
        def __init__(self, mode: 'CBC'):
            super().__init__(mode)
            self._last_cipher_block = mode._iv

        def _process_block(self, in_block: Union[bytes, bytearray, memoryview]) -> bytes:
            # 输入分组解密后与上一组密文异或，形成明文
            decrypted = xor_on_bytes(self._mode.algorithm.decrypt_block(in_block), self._last_cipher_block)
            self._last_cipher_block = bytes(in_block)  # 保留本组输入（密文）用于下一组处理
            return decrypted

    def encryptor(self) -> Encryptor:
        return CBC.Encryptor(self)

    def decryptor(self) -> Decryptor:
        return CBC.Decryptor(self)


class CTR(IVMode):
    """计数器（CTR）模式，规定于GB/T 17964-2021 9

    计数器为整个分组长度的大端无符号整数，每个分组加一，溢出时回绕为0（与OpenSSL相同）。
    """
    def __init__(self, iv: Union[bytes, bytearray, memoryview], algorithm: Optional[BlockCipherAlgorithm] = None):
        super().__init__(iv, algorithm)

    class InnerCodec(BlockwiseInnerCodec):
        """CTR模式的加密解密是相同算法
        """
        def __init__(self, mode: 'CTR'):
            super().__init__(mode)
            self._last_counter = bytearray(mode._iv)
            self._block_byte_len = mode.block_byte_len
            self._algorithm = mode.algorithm

        def _process_block(self, in_block: Union[bytes, bytearray, memoryview]) -> bytes:
            mask = self._algorithm.encrypt_block(self._last_counter)  # 计数器加密为分组掩码
            if len(in_block) == self._block_byte_len:
                out_block = xor_on_bytes(in_block, mask)  # 分组掩码与明文/密文异或得到密文/明文
            else:
                out_block = xor_on_bytes(in_block, memoryview(mask)[0:len(in_block)])
            uint_incr(self._last_counter)
            return out_block

        def finalize(self) -> bytes:
            assert len(self._buffer) < self._block_byte_len
            if len(self._buffer) == 0:
                return b''
            out_octets = self._process_block(self._buffer)  # 尾部数据不足一个分组时无需填充
            self._buffer.clear()
            return out_octets

    def encryptor(self) -> InnerCodec:
        return CTR.InnerCodec(self)

    def decryptor(self) -> InnerCodec:
        return CTR.InnerCodec(self)


class CFB(IVMode):
    """密文反馈（CFB）模式，规定于GB/T 17964-2021 7

    CFB模式的分组长度可以短于底层分组加密算法的分组长度，如果取8bit的话则转变为流加密（CFB8），
    缺省取底层分组密码算法的分组长度（CFB128）。反馈长度与模式分组长度相同。
    """
    def __init__(self, iv: Union[bytes, bytearray, memoryview], algorithm: Optional[BlockCipherAlgorithm] = None,
                 stream_unit_byte_len: Optional[int] = None):
        """初始化函数

        :param iv: 初始向量IV，长度与底层分组密码算法的分组长度相同
        :param algorithm: 底层的分组密码算法
        :param stream_unit_byte_len: CFB模式的分组长度（国标中的j//8），不超过底层的分组密码算法的长度
        """
        super().__init__(iv, algorithm)
        self._stream_unit_byte_len = stream_unit_byte_len if stream_unit_byte_len else self._block_byte_len
        if not (0 < self._stream_unit_byte_len <= self._block_byte_len):
            raise ValidationError(f'CFB模式分组长度错误/Invalid CFB segment size: {self._stream_unit_byte_len}')

    class InnerCodec(Codec, ABC):
        def __init__(self, mode: 'CFB'):
            self._algorithm = mode.algorithm
            self._stream_unit_byte_len = mode._stream_unit_byte_len
            self._buffer = bytearray()
            self._fb = bytes(mode._iv)  # 反馈变量

        @abstractmethod
        def _process_block(self, in_block: Union[bytes, bytearray, memoryview], val_y: memoryview
                           ) -> Tuple[bytes, bytes]:
            """对于每个分组的处理流程，加密和解密不同

            :param in_block: 输入数据，长度为模式分组长度
            :return: 二元组(用于反馈的密文, 用于输出的密文（加密时）或明文（解密时）)
            """
            raise NotImplementedError()

        def _process_buffer(self) -> bytes:
            out_octets = bytearray()
            in_octets = memoryview(self._buffer)
            buffer_len = len(self._buffer)
            m = 0
            n = self._stream_unit_byte_len
            while n <= buffer_len:
                val_y = memoryview(self._algorithm.encrypt_block(self._fb))[0:self._stream_unit_byte_len]  # 掩码
                val_c, val_out = self._process_block(in_octets[m:n], val_y)
                out_octets.extend(val_out)
                self._fb = self._fb[len(val_c):] + bytes(val_c)  # 反馈变量左移，右侧补入密文

                m = n
                n = m + self._stream_unit_byte_len  # 输入的下一个模式分组

            in_octets.release()
            del self._buffer[:m]
            return bytes(out_octets)

        def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
            self._buffer.extend(octets)
            return self._process_buffer()

        def finalize(self) -> bytes:
            buffer_len = len(self._buffer)
            if buffer_len == 0:
                return b''
            # 最后不足一个模式分组时，只使用掩码的左侧部分
            self._buffer.extend(b'\x00' * (self._stream_unit_byte_len - buffer_len))
            out_octets = self._process_buffer()
            return out_octets[0:buffer_len]

    class Encryptor(InnerCodec):
        def _process_block(self, in_block: Union[bytes, bytearray, memoryview], val_y: memoryview
                           ) -> Tuple[bytes, bytes]:
            # 加密时返回密文用于反馈，同时返回密文用于输出
            val_c = xor_on_bytes(val_y, in_block)
            return val_c, val_c

    class Decryptor(InnerCodec):
        def _process_block(self, in_block: Union[bytes, bytearray, memoryview], val_y: memoryview
                           ) -> Tuple[bytes, bytes]:
            # 解密时返回密文用于反馈，同时返回明文用于输出
            return bytes(in_block), xor_on_bytes(val_y, in_block)

    def encryptor(self) -> Encryptor:
        return CFB.Encryptor(self)

    def decryptor(self) -> Decryptor:
        return CFB.Decryptor(self)


class OFB(IVMode):
    """输出反馈（OFB）模式，规定于GB/T 17964-2021 8"""
    def __init__(self, iv: Union[bytes, bytearray, memoryview], algorithm: Optional[BlockCipherAlgorithm] = None,
                 stream_unit_byte_len: Optional[int] = None):
        super().__init__(iv, algorithm)
        self._stream_unit_byte_len = stream_unit_byte_len if stream_unit_byte_len else self._block_byte_len
        if not (0 < self._stream_unit_byte_len <= self._block_byte_len):
            raise ValidationError(f'OFB模式分组长度错误/Invalid OFB segment size: {self._stream_unit_byte_len}')

    class InnerCodec(Codec):
        def __init__(self, mode: 'OFB'):
            self._algorithm = mode.algorithm  # 分组加密算法
            self._stream_unit_byte_len = mode._stream_unit_byte_len  # 模式分组长度
            self._fb = mode._iv  # 反馈变量
            self._buffer = bytearray()  # 输入缓冲区

        def _process_buffer(self) -> bytes:
            out_octets = bytearray()
            in_octets = memoryview(self._buffer)
            buffer_len = len(self._buffer)
            m = 0
            n = self._stream_unit_byte_len
            while n <= buffer_len:
                val_y = self._algorithm.encrypt_block(self._fb)  # 加密反馈变量用作掩码
                # 掩码左侧部分（长度为模式分组长度）与输入明文/密文异或形成密文/明文并输出
                out_octets.extend(xor_on_bytes(memoryview(val_y)[0:self._stream_unit_byte_len], in_octets[m:n]))
                self._fb = val_y  # 掩码作为下一组的反馈变量

                m = n
                n = m + self._stream_unit_byte_len

            in_octets.release()
            del self._buffer[:m]
            return bytes(out_octets)

        def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
            self._buffer.extend(octets)
            return self._process_buffer()

        def finalize(self) -> bytes:
            buffer_len = len(self._buffer)
            if buffer_len == 0:
                return b''
            self._buffer.extend(b'\x00' * (self._stream_unit_byte_len - buffer_len))
            out_octets = self._process_buffer()
            return out_octets[0:buffer_len]

    def encryptor(self) -> InnerCodec:
        return OFB.InnerCodec(self)

    def decryptor(self) -> InnerCodec:
        return OFB.InnerCodec(self)


class GCM(Mode):
    """伽罗华/计数器（GCM）模式，NIST SP 800-38D，SM4-GCM见RFC 8998

    计数器只对最右侧32比特加一（inc32）；IV为12字节时J0 = IV || 0x00000001，其他长度经GHASH得到J0。
    加密输出为密文 || 标签，解密输入同样为密文 || 标签；解密时在标签验证通过以前不输出任何明文，
    标签不符时finalize()抛出AuthenticationFailure。
    """
    TAG_BYTE_LEN = 16

    def __init__(self, algorithm: BlockCipherAlgorithm, iv: Union[bytes, bytearray, memoryview],
                 aad: Union[bytes, bytearray, memoryview] = b'', tag_byte_len: int = TAG_BYTE_LEN):
        """初始化函数

        :param algorithm: 128比特分组密码算法
        :param iv: 初始向量（临时值），推荐12字节，不能为空，同一密钥下不能重复使用
        :param aad: 附加鉴别数据
        :param tag_byte_len: 标签长度，缺省为16字节
        """
        self._iv = bytes(iv)
        self._aad = bytes(aad)
        if not (12 <= tag_byte_len <= 16):
            raise ValidationError(f'GCM标签长度错误/Invalid GCM tag length: {tag_byte_len}')
        self._tag_byte_len = tag_byte_len
        self._key_h = None
        self._j0 = None
        super().__init__(algorithm)

    def set_algorithm(self, algorithm: BlockCipherAlgorithm):
        if algorithm.block_size != 128:
            raise ValidationError('GCM模式只支持128比特分组密码/GCM requires a 128-bit block cipher')
        super().set_algorithm(algorithm)
        self._key_h = algorithm.encrypt_block(ZEROS_128)  # 杂凑子密钥H
        self._j0 = gcm_pre_counter_block(self._key_h, self._iv)

    @property
    def tag_byte_len(self) -> int:
        return self._tag_byte_len

    class InnerCodec(Codec, ABC):
        def __init__(self, mode: 'GCM'):
            self._mode = mode
            self._algorithm = mode.algorithm
            self._counter = bytearray(mode._j0)
            uint_incr(self._counter, 4)
            self._ghash = GHash(mode._key_h, mode._aad)
            self._buffer = bytearray()

        def _gctr(self, in_octets: Union[bytes, bytearray, memoryview]) -> bytes:
            """对输入数据逐分组进行计数器模式加密，最后一组可以不足分组长度"""
            out_octets = bytearray()
            view = memoryview(in_octets)
            for m in range(0, len(view), 16):
                block = view[m:m + 16]
                mask = self._algorithm.encrypt_block(self._counter)
                out_octets.extend(xor_on_bytes(block, memoryview(mask)[0:len(block)]))
                uint_incr(self._counter, 4)
            view.release()
            return bytes(out_octets)

        def _tag(self) -> bytes:
            s = self._ghash.finalize().to_bytes(16, byteorder='big', signed=False)
            full_tag = xor_on_bytes(self._algorithm.encrypt_block(self._mode._j0), s)
            return full_tag[0:self._mode.tag_byte_len]

    class Encryptor(InnerCodec):
        def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
            self._buffer.extend(octets)
            full = len(self._buffer) - len(self._buffer) % 16
            if full == 0:
                return b''
            cipher_text = self._gctr(bytes(self._buffer[0:full]))
            del self._buffer[:full]
            self._ghash.update(cipher_text)
            return cipher_text

        def finalize(self) -> bytes:
            cipher_text = self._gctr(self._buffer)
            self._buffer.clear()
            self._ghash.update(cipher_text)
            tag = self._tag()
            logger.debug('GCM tag: %s', tag.hex())
            return cipher_text + tag

    class Decryptor(InnerCodec):
        def __init__(self, mode: 'GCM'):
            super().__init__(mode)
            self._plain_text = bytearray()

        def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
            self._buffer.extend(octets)
            # 保留最后的标签长度的数据，其余完整分组先行解密但不输出
            available = len(self._buffer) - self._mode.tag_byte_len
            full = available - available % 16 if available > 0 else 0
            if full > 0:
                cipher_text = bytes(self._buffer[0:full])
                del self._buffer[:full]
                self._ghash.update(cipher_text)
                self._plain_text.extend(self._gctr(cipher_text))
            return b''

        def finalize(self) -> bytes:
            tag_byte_len = self._mode.tag_byte_len
            if len(self._buffer) < tag_byte_len:
                raise ValidationError('GCM密文长度不足以包含标签/GCM input is shorter than the tag')
            cipher_text = bytes(self._buffer[0:-tag_byte_len])
            received_tag = bytes(self._buffer[-tag_byte_len:])
            self._buffer.clear()
            self._ghash.update(cipher_text)
            self._plain_text.extend(self._gctr(cipher_text))
            expected_tag = self._tag()
            if not _hmac.compare_digest(expected_tag, received_tag):
                self._plain_text.clear()
                logger.debug('GCM tag mismatch: expected %s, received %s', expected_tag.hex(), received_tag.hex())
                raise AuthenticationFailure('GCM标签验证失败/GCM tag mismatch')
            plain_text = bytes(self._plain_text)
            self._plain_text.clear()
            return plain_text

    def encryptor(self) -> Encryptor:
        return GCM.Encryptor(self)

    def decryptor(self) -> Decryptor:
        return GCM.Decryptor(self)


def get_mode(mode_name: Union[CipherMode, str], algorithm: BlockCipherAlgorithm, **kwargs) -> Mode:
    """根据名称构造工作模式

    :param mode_name: ECB/CBC/CTR/CFB/OFB/GCM，不区分大小写
    :param algorithm: 分组密码算法
    :param kwargs: iv（除ECB外都需要）、aad（GCM）、stream_unit_byte_len（CFB/OFB）
    """
    mode = parse_option(CipherMode, mode_name)
    logger.debug('工作模式: %s', mode.name)
    iv = kwargs.get('iv')
    if mode.requires_iv and iv is None:
        raise ValidationError(f'{mode.name}模式需要初始向量IV/{mode.name} mode requires an IV')
    if mode is CipherMode.ECB:
        return ECB(algorithm=algorithm)
    elif mode is CipherMode.CBC:
        return CBC(iv=iv, algorithm=algorithm)
    elif mode is CipherMode.CTR:
        return CTR(iv=iv, algorithm=algorithm)
    elif mode is CipherMode.CFB:
        return CFB(iv=iv, algorithm=algorithm, stream_unit_byte_len=kwargs.get('stream_unit_byte_len'))
    elif mode is CipherMode.OFB:
        return OFB(iv=iv, algorithm=algorithm, stream_unit_byte_len=kwargs.get('stream_unit_byte_len'))
    elif mode is CipherMode.GCM:
        return GCM(algorithm, iv, aad=kwargs.get('aad', b''))
    raise ValidationError(f'未知的工作模式/Unknown mode: {mode_name}')
