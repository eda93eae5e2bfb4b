from typing import Union
from abc import ABC, abstractmethod


class GMKitError(Exception):
    """本项目所有异常的基类"""
    def __init__(self, *args):
        super().__init__(*args)


class ValidationError(GMKitError, ValueError):
    """输入数据格式或长度错误，例如错误的HEX字符串、密钥或IV长度、填充格式、未知的模式名称等"""
    def __init__(self, *args):
        super().__init__(*args)


class CryptoError(GMKitError):
    """密码学意义上无效的数据或算法前提条件不满足，例如点不在曲线上、标量超出范围、重试次数耗尽等"""
    def __init__(self, *args):
        super().__init__(*args)


class AuthenticationFailure(GMKitError):
    """格式正确但未通过鉴别的数据，例如GCM标签不符、SM2密文C3不符"""
    def __init__(self, *args):
        super().__init__(*args)


class EncodingError(GMKitError, ValueError):
    """ASN.1结构错误，例如标签错误、长度截断或内容越界"""
    def __init__(self, *args):
        super().__init__(*args)


class Codec(ABC):
    """用以表示可以多次输入数据（字节串），并按某个规则转换为输出数据（字节串）的抽象基类。

    数据填充、分组加密等算法都可以用此类实现，典型使用方式如下：
    codec = Codec()
    result = bytearray()  # 输出数据
    result.extend(codec.update(input_octets_1))  # 输入数据第一部分
    result.extend(codec.update(input_octets_2))  # 输入数据第二部分
    result.extend(codec.finalize())  # 结束输入
    """

    @abstractmethod
    def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
        """接受输入数据的函数，当输出数据可用时返回全部可输出数据，否则返回空字节串

        :param octets: 输入字节串
        """
        raise NotImplementedError()

    @abstractmethod
    def finalize(self) -> bytes:
        """完成输入数据的函数，当输出数据可用时返回全部可输出数据，否则返回空字节串
        """
        raise NotImplementedError()


class BlockCipherAlgorithm(ABC):
    """用于表示分组加密算法的抽象基类，在本项目中由SM4实现，测试中也可以接入AES"""
    def __init__(self, block_size: int):
        self._block_size = block_size

    @property
    @abstractmethod
    def block_size(self) -> int:
        """分组长度（比特）"""
        raise NotImplementedError()

    @abstractmethod
    def encrypt_block(self, in_octets: Union[bytes, bytearray, memoryview]) -> bytes:
        """分组加密函数

        :param in_octets: 待加密的明文数据，长度应当与分组长度相同
        :return: 加密后的密文数据，通常与分组长度相同
        """
        raise NotImplementedError()

    @abstractmethod
    def decrypt_block(self, in_octets: Union[bytes, bytearray, memoryview]) -> bytes:
        """分组解密函数

        :param in_octets: 待解密的密文数据，长度应当与分组长度相同
        :return: 解密后的明文数据，通常与分组长度相同
        """
        raise NotImplementedError()


class MerkleDamgardHash(ABC):
    """采用Merkle-Damgård结构的杂凑算法的公共部分

    输入数据先进入缓冲区，每凑满一个分组就调用压缩函数；finalize()时按“1比特+若干0比特+消息比特长度”填充，
    输出杂凑值并将内部状态复位，同一对象可以继续用于下一条消息。
    同一对象不应被多个线程同时调用update()。
    """
    BLOCK_BYTE_LENGTH = 64
    DIGEST_BYTE_LENGTH = 32
    LENGTH_BYTE_LENGTH = 8

    def __init__(self):
        self._buffer = bytearray()
        self._length = 0
        self._v = list(self._initial_value())

    @abstractmethod
    def _initial_value(self) -> tuple:
        """压缩函数的初始链接变量"""
        raise NotImplementedError()

    @abstractmethod
    def _compress(self, block_in: memoryview):
        """对一个分组执行压缩函数，更新self._v"""
        raise NotImplementedError()

    @abstractmethod
    def _output(self) -> bytes:
        """由最终的链接变量形成杂凑值"""
        raise NotImplementedError()

    @property
    def block_byte_length(self) -> int:
        return self.BLOCK_BYTE_LENGTH

    @property
    def digest_byte_length(self) -> int:
        return self.DIGEST_BYTE_LENGTH

    def reset(self):
        """丢弃已输入的数据，回到初始状态"""
        self._buffer.clear()
        self._length = 0
        self._v = list(self._initial_value())

    def _process_buffer(self):
        block_len = self.BLOCK_BYTE_LENGTH
        buffer_len = len(self._buffer)
        if buffer_len < block_len:
            return
        view = memoryview(self._buffer)
        m, n = 0, block_len
        while n <= buffer_len:
            self._compress(view[m:n])
            m = n
            n = m + block_len
        view.release()
        del self._buffer[:m]

    def update(self, message: Union[bytes, bytearray, memoryview]) -> 'MerkleDamgardHash':
        self._buffer.extend(message)
        self._length += len(message)
        self._process_buffer()
        return self

    def finalize(self) -> bytes:
        """完成输入并返回杂凑值，随后内部状态复位"""
        bit_length = self._length * 8
        block_len = self.BLOCK_BYTE_LENGTH
        self._buffer.append(0x80)
        k = (len(self._buffer) + self.LENGTH_BYTE_LENGTH) % block_len  # 填充0x00之前超出整分组的字节数
        if k > 0:
            self._buffer.extend(b'\x00' * (block_len - k))
        self._buffer.extend(bit_length.to_bytes(self.LENGTH_BYTE_LENGTH, byteorder='big', signed=False))
        self._process_buffer()
        assert len(self._buffer) == 0
        result = self._output()
        self.reset()
        return result

    def digest(self) -> bytes:
        """同finalize()"""
        return self.finalize()

    def copy(self) -> 'MerkleDamgardHash':
        """复制当前状态，用于在不破坏当前状态的情况下计算中间结果的杂凑值"""
        other = self.__class__()
        other._buffer = bytearray(self._buffer)
        other._length = self._length
        other._v = list(self._v)
        return other
