from typing import Union, Optional, List
import logging

from .calculation import rls_32
from .commons import Codec, BlockCipherAlgorithm, ValidationError
from .constants import CipherMode, PaddingMode, parse_option
from .encoding import to_octets, check_length
from .mac import gmac
from .mode import get_mode
from .padding import get_padding

logger = logging.getLogger(__name__)

# GB/T 32907-2016 6.2 表1
_SM4_SBOX = [
    0xd6, 0x90, 0xe9, 0xfe, 0xcc, 0xe1, 0x3d, 0xb7, 0x16, 0xb6, 0x14, 0xc2, 0x28, 0xfb, 0x2c,
    0x05, 0x2b, 0x67, 0x9a, 0x76, 0x2a, 0xbe, 0x04, 0xc3, 0xaa, 0x44, 0x13, 0x26, 0x49, 0x86,
    0x06, 0x99, 0x9c, 0x42, 0x50, 0xf4, 0x91, 0xef, 0x98, 0x7a, 0x33, 0x54, 0x0b, 0x43, 0xed,
    0xcf, 0xac, 0x62, 0xe4, 0xb3, 0x1c, 0xa9, 0xc9, 0x08, 0xe8, 0x95, 0x80, 0xdf, 0x94, 0xfa,
    0x75, 0x8f, 0x3f, 0xa6, 0x47, 0x07, 0xa7, 0xfc, 0xf3, 0x73, 0x17, 0xba, 0x83, 0x59, 0x3c,
    0x19, 0xe6, 0x85, 0x4f, 0xa8, 0x68, 0x6b, 0x81, 0xb2, 0x71, 0x64, 0xda, 0x8b, 0xf8, 0xeb,
    0x0f, 0x4b, 0x70, 0x56, 0x9d, 0x35, 0x1e, 0x24, 0x0e, 0x5e, 0x63, 0x58, 0xd1, 0xa2, 0x25,
    0x22, 0x7c, 0x3b, 0x01, 0x21, 0x78, 0x87, 0xd4, 0x00, 0x46, 0x57, 0x9f, 0xd3, 0x27, 0x52,
    0x4c, 0x36, 0x02, 0xe7, 0xa0, 0xc4, 0xc8, 0x9e, 0xea, 0xbf, 0x8a, 0xd2, 0x40, 0xc7, 0x38,
    0xb5, 0xa3, 0xf7, 0xf2, 0xce, 0xf9, 0x61, 0x15, 0xa1, 0xe0, 0xae, 0x5d, 0xa4, 0x9b, 0x34,
    0x1a, 0x55, 0xad, 0x93, 0x32, 0x30, 0xf5, 0x8c, 0xb1, 0xe3, 0x1d, 0xf6, 0xe2, 0x2e, 0x82,
    0x66, 0xca, 0x60, 0xc0, 0x29, 0x23, 0xab, 0x0d, 0x53, 0x4e, 0x6f, 0xd5, 0xdb, 0x37, 0x45,
    0xde, 0xfd, 0x8e, 0x2f, 0x03, 0xff, 0x6a, 0x72, 0x6d, 0x6c, 0x5b, 0x51, 0x8d, 0x1b, 0xaf,
    0x92, 0xbb, 0xdd, 0xbc, 0x7f, 0x11, 0xd9, 0x5c, 0x41, 0x1f, 0x10, 0x5a, 0xd8, 0x0a, 0xc1,
    0x31, 0x88, 0xa5, 0xcd, 0x7b, 0xbd, 0x2d, 0x74, 0xd0, 0x12, 0xb8, 0xe5, 0xb4, 0xb0, 0x89,
    0x69, 0x97, 0x4a, 0x0c, 0x96, 0x77, 0x7e, 0x65, 0xb9, 0xf1, 0x09, 0xc5, 0x6e, 0xc6, 0x84,
    0x18, 0xf0, 0x7d, 0xec, 0x3a, 0xdc, 0x4d, 0x20, 0x79, 0xee, 0x5f, 0x3e, 0xd7, 0xcb, 0x39,
    0x48,
]

# GB/T 32907-2016 7.3 密钥扩展算法 b) 系统参数FK
_SM4_FK = [0xa3b1bac6, 0x56aa3350, 0x677d9197, 0xb27022dc]

# GB/T 32907-2016 7.3 密钥扩展算法 c) 固定参数CK
_SM4_CK = [
    0x00070e15, 0x1c232a31, 0x383f464d, 0x545b6269,
    0x70777e85, 0x8c939aa1, 0xa8afb6bd, 0xc4cbd2d9,
    0xe0e7eef5, 0xfc030a11, 0x181f262d, 0x343b4249,
    0x50575e65, 0x6c737a81, 0x888f969d, 0xa4abb2b9,
    0xc0c7ced5, 0xdce3eaf1, 0xf8ff060d, 0x141b2229,
    0x30373e45, 0x4c535a61, 0x686f767d, 0x848b9299,
    0xa0a7aeb5, 0xbcc3cad1, 0xd8dfe6ed, 0xf4fb0209,
    0x10171e25, 0x2c333a41, 0x484f565d, 0x646b7279
]


def _tau(a: int) -> int:
    """GB/T 32907-2016 6.2 合成置换T a) 非线性变换tau，将32位的块分成4个8位整数，经Sbox转换后重新组合成32位整数"""
    return ((_SM4_SBOX[(a >> 24) & 0xff] << 24) | (_SM4_SBOX[(a >> 16) & 0xff] << 16)
            | (_SM4_SBOX[(a >> 8) & 0xff] << 8) | _SM4_SBOX[a & 0xff])


def sm4_encrypt_block(secret_key: Union[bytes, bytearray, memoryview],
                      message: Union[bytes, bytearray, memoryview]) -> bytes:
    """SM4加密函数

    适用于一次性加密的情况，相同密钥反复使用的情况适合使用SM4类
    GB/T 32907-2016 7.1 加密算法
    :param secret_key: 加密密钥
    :param message: 明文分组
    :return: 密文分组
    """
    return SM4(secret_key).encrypt_block(message)


def sm4_decrypt_block(secret_key: Union[bytes, bytearray, memoryview],
                      cipher_text: Union[bytes, bytearray, memoryview]) -> bytes:
    """SM4解密函数

    适用于一次性解密的情况，相同密钥反复使用的情况适合使用SM4类
    :param secret_key: 加密密钥
    :param cipher_text: 密文分组
    :return: 明文分组
    """
    return SM4(secret_key).decrypt_block(cipher_text)


class SM4(BlockCipherAlgorithm):
    """SM4加解密类，适用于相同密钥反复使用的情况，轮密钥在构造时计算一次"""
    BLOCK_SIZE = 128
    BLOCK_BYTE_LEN = 16
    KEY_BYTE_LEN = 16

    def __init__(self, secret_key: Union[bytes, bytearray, memoryview, str]):
        super().__init__(SM4.BLOCK_SIZE)
        secret_key = to_octets(secret_key, 'SM4 key')
        check_length(secret_key, SM4.KEY_BYTE_LEN, 'SM4密钥/SM4 key')
        self._rks = SM4._expand_round_keys(secret_key)
        self._rks_reversed = list(reversed(self._rks))

    @property
    def block_size(self) -> int:
        return self.BLOCK_SIZE

    def encrypt_block(self, message: Union[bytes, bytearray, memoryview]) -> bytes:
        return self._do_sm4_rounds(message, self._rks)

    def decrypt_block(self, message: Union[bytes, bytearray, memoryview]) -> bytes:
        # 解密与加密使用相同的轮函数，只是轮密钥顺序相反
        return self._do_sm4_rounds(message, self._rks_reversed)

    @staticmethod
    def _expand_round_keys(mk_octets: Union[bytes, bytearray]) -> List[int]:
        """GB/T 32907-2016 7.3 密钥扩展算法

        :param mk_octets: 加密密钥，128-bit字节串
        """
        mv = memoryview(mk_octets)
        k = [int.from_bytes(mv[i: i + 4], byteorder='big', signed=False) ^ _SM4_FK[i // 4]
             for i in range(0, 16, 4)]  # 式（6）
        mv.release()

        rks = [0] * 32
        for j in range(32):
            b = _tau(k[1] ^ k[2] ^ k[3] ^ _SM4_CK[j])
            rk = k[0] ^ b ^ rls_32(b, 13) ^ rls_32(b, 23)  # 线性变换L'
            rks[j] = rk
            k = [k[1], k[2], k[3], rk]
        return rks

    def _do_sm4_rounds(self, message: Union[bytes, bytearray, memoryview], rks: List[int]) -> bytes:
        """SM4轮函数迭代

        GB/T 32907-2016 7.1 加密算法
        :param message: 输入分组
        :param rks: 轮密钥，加密时正序，解密时逆序
        """
        if len(message) != SM4.BLOCK_BYTE_LEN:
            raise ValidationError(f'SM4分组长度必须为16字节/SM4 block should be 16 bytes, got {len(message)}')
        x = int.from_bytes(message, byteorder='big', signed=False)
        x0, x1, x2, x3 = (x >> 96) & 0xffffffff, (x >> 64) & 0xffffffff, (x >> 32) & 0xffffffff, x & 0xffffffff

        for rk in rks:
            # GB/T 32907-2016 6.1 轮函数F
            b = _tau(x1 ^ x2 ^ x3 ^ rk)
            c = b ^ rls_32(b, 2) ^ rls_32(b, 10) ^ rls_32(b, 18) ^ rls_32(b, 24)  # 线性变换L
            x0, x1, x2, x3 = x1, x2, x3, x0 ^ c

        # 反序变换R
        return ((x3 << 96) | (x2 << 64) | (x1 << 32) | x0).to_bytes(16, byteorder='big', signed=False)


def _check_mode_arguments(mode: CipherMode, iv: Optional[bytes]):
    if mode is CipherMode.ECB:
        return
    if iv is None:
        raise ValidationError(f'{mode.name}模式需要初始向量IV/{mode.name} mode requires an IV')
    if mode is CipherMode.GCM:
        if len(iv) == 0:
            raise ValidationError('GCM模式的IV不能为空/GCM IV must not be empty')
    else:
        check_length(iv, SM4.BLOCK_BYTE_LEN, 'SM4初始向量/SM4 IV')


def _effective_padding(mode: CipherMode, padding: Union[PaddingMode, str, None]) -> PaddingMode:
    """CTR/CFB/OFB/GCM是序列密码式的工作模式，不进行填充"""
    padding_mode = parse_option(PaddingMode, padding)
    if mode.stream_like and padding_mode is not PaddingMode.NONE:
        logger.debug('%s模式不填充，忽略%s/%s mode ignores %s padding', mode.name, padding_mode.name,
                     mode.name, padding_mode.name)
        return PaddingMode.NONE
    return padding_mode


class SM4Encryptor(Codec):
    """SM4流式加密，典型使用方式：

    enc = SM4Encryptor(key, 'CBC', 'PKCS7', iv=iv)
    cipher_text = enc.update(part_1) + enc.update(part_2) + enc.finalize()
    """
    def __init__(self, secret_key: Union[bytes, bytearray, memoryview, str],
                 mode: Union[CipherMode, str] = CipherMode.ECB,
                 padding: Union[PaddingMode, str, None] = PaddingMode.PKCS7, **kwargs):
        cipher_mode = parse_option(CipherMode, mode)
        iv = kwargs.pop('iv', None)
        iv = to_octets(iv, 'iv') if iv is not None else None
        _check_mode_arguments(cipher_mode, iv)
        self.sm4 = SM4(secret_key)
        self.padding = get_padding(_effective_padding(cipher_mode, padding), SM4.BLOCK_SIZE, True)
        self.mode = get_mode(cipher_mode, self.sm4, iv=iv, **kwargs)
        self.encryptor = self.mode.encryptor()

    def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
        if self.padding:
            in_octets = self.padding.update(octets)
        else:
            in_octets = octets

        return self.encryptor.update(in_octets)

    def finalize(self) -> bytes:
        out_octets = bytearray()
        if self.padding:
            in_octets = self.padding.finalize()
            if len(in_octets) > 0:
                out_octets.extend(self.encryptor.update(in_octets))
        out_octets.extend(self.encryptor.finalize())
        return bytes(out_octets)


class SM4Decryptor(Codec):
    """SM4流式解密，参数与SM4Encryptor相同；GCM模式的输入为密文 || 标签"""
    def __init__(self, secret_key: Union[bytes, bytearray, memoryview, str],
                 mode: Union[CipherMode, str] = CipherMode.ECB,
                 padding: Union[PaddingMode, str, None] = PaddingMode.PKCS7, **kwargs):
        cipher_mode = parse_option(CipherMode, mode)
        iv = kwargs.pop('iv', None)
        iv = to_octets(iv, 'iv') if iv is not None else None
        _check_mode_arguments(cipher_mode, iv)
        self.sm4 = SM4(secret_key)
        self.padding = get_padding(_effective_padding(cipher_mode, padding), SM4.BLOCK_SIZE, False)
        self.mode = get_mode(cipher_mode, self.sm4, iv=iv, **kwargs)
        self.decryptor = self.mode.decryptor()

    def update(self, octets: Union[bytes, bytearray, memoryview]) -> bytes:
        decrypted = self.decryptor.update(octets)
        if self.padding:
            return self.padding.update(decrypted)
        else:
            return bytes(decrypted)

    def finalize(self) -> bytes:
        decrypted = self.decryptor.finalize()
        if self.padding:
            return self.padding.update(decrypted) + self.padding.finalize()
        else:
            return bytes(decrypted)


def sm4_encrypt(secret_key: Union[bytes, bytearray, memoryview, str],
                message: Union[bytes, bytearray, memoryview, str],
                mode: Union[CipherMode, str] = CipherMode.ECB,
                padding: Union[PaddingMode, str, None] = PaddingMode.PKCS7,
                iv: Union[bytes, bytearray, memoryview, str, None] = None,
                aad: Union[bytes, bytearray, memoryview, str] = b'') -> bytes:
    """SM4一次性加密

    :param secret_key: 16字节密钥，字符串按HEX解析
    :param message: 明文，字符串按UTF-8编码
    :param mode: ECB/CBC/CTR/CFB/OFB/GCM
    :param padding: PKCS7/NONE，只对ECB和CBC有效
    :param iv: 初始向量，ECB以外的模式必需；GCM推荐12字节，其他模式为16字节
    :param aad: GCM模式的附加鉴别数据，字符串按UTF-8编码
    :return: 密文，GCM模式为密文 || 16字节标签
    """
    kwargs = {'iv': iv}
    if parse_option(CipherMode, mode) is CipherMode.GCM:
        kwargs['aad'] = aad.encode('utf-8') if isinstance(aad, str) else aad
    encryptor = SM4Encryptor(secret_key, mode, padding, **kwargs)
    data = message.encode('utf-8') if isinstance(message, str) else message
    return encryptor.update(data) + encryptor.finalize()


def sm4_decrypt(secret_key: Union[bytes, bytearray, memoryview, str],
                cipher_text: Union[bytes, bytearray, memoryview, str],
                mode: Union[CipherMode, str] = CipherMode.ECB,
                padding: Union[PaddingMode, str, None] = PaddingMode.PKCS7,
                iv: Union[bytes, bytearray, memoryview, str, None] = None,
                aad: Union[bytes, bytearray, memoryview, str] = b'') -> bytes:
    """SM4一次性解密，参数与sm4_encrypt相同，密文为字符串时按HEX解析

    GCM模式标签不符时抛出AuthenticationFailure；填充格式错误时抛出ValidationError
    """
    kwargs = {'iv': iv}
    if parse_option(CipherMode, mode) is CipherMode.GCM:
        kwargs['aad'] = aad.encode('utf-8') if isinstance(aad, str) else aad
    decryptor = SM4Decryptor(secret_key, mode, padding, **kwargs)
    return decryptor.update(to_octets(cipher_text, 'cipher text')) + decryptor.finalize()


def sm4_gmac(key: Union[bytes, bytearray, memoryview],
             message: Union[bytes, bytearray, memoryview], n: Union[bytes, bytearray, memoryview]) -> bytes:
    """SM4算法的GMAC，GB/T 15852.3-2019 附录A"""
    return gmac(SM4(key), message, n)
