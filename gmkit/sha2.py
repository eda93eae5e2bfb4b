"""SHA-2系列杂凑算法（SHA-256、SHA-384、SHA-512），FIPS 180-4

与SM3共用Merkle-Damgård结构的缓冲和填充逻辑，只实现各自的压缩函数。
"""
from typing import Union

from .commons import MerkleDamgardHash
from .mac import hmac
from .calculation import rrs_32, rrs_64, mod_adds_32, mod_adds_64

# FIPS 180-4 4.2.2 前64个素数立方根小数部分的前32比特
_SHA256_K = (
    0x428a2f98, 0x71374491, 0xb5c0fbcf, 0xe9b5dba5, 0x3956c25b, 0x59f111f1, 0x923f82a4, 0xab1c5ed5,
    0xd807aa98, 0x12835b01, 0x243185be, 0x550c7dc3, 0x72be5d74, 0x80deb1fe, 0x9bdc06a7, 0xc19bf174,
    0xe49b69c1, 0xefbe4786, 0x0fc19dc6, 0x240ca1cc, 0x2de92c6f, 0x4a7484aa, 0x5cb0a9dc, 0x76f988da,
    0x983e5152, 0xa831c66d, 0xb00327c8, 0xbf597fc7, 0xc6e00bf3, 0xd5a79147, 0x06ca6351, 0x14292967,
    0x27b70a85, 0x2e1b2138, 0x4d2c6dfc, 0x53380d13, 0x650a7354, 0x766a0abb, 0x81c2c92e, 0x92722c85,
    0xa2bfe8a1, 0xa81a664b, 0xc24b8b70, 0xc76c51a3, 0xd192e819, 0xd6990624, 0xf40e3585, 0x106aa070,
    0x19a4c116, 0x1e376c08, 0x2748774c, 0x34b0bcb5, 0x391c0cb3, 0x4ed8aa4a, 0x5b9cca4f, 0x682e6ff3,
    0x748f82ee, 0x78a5636f, 0x84c87814, 0x8cc70208, 0x90befffa, 0xa4506ceb, 0xbef9a3f7, 0xc67178f2,
)

# FIPS 180-4 5.3.3 前8个素数平方根小数部分的前32比特
_SHA256_IV = (
    0x6a09e667, 0xbb67ae85, 0x3c6ef372, 0xa54ff53a,
    0x510e527f, 0x9b05688c, 0x1f83d9ab, 0x5be0cd19,
)

# FIPS 180-4 4.2.3 前80个素数立方根小数部分的前64比特
_SHA512_K = (
    0x428a2f98d728ae22, 0x7137449123ef65cd, 0xb5c0fbcfec4d3b2f, 0xe9b5dba58189dbbc,
    0x3956c25bf348b538, 0x59f111f1b605d019, 0x923f82a4af194f9b, 0xab1c5ed5da6d8118,
    0xd807aa98a3030242, 0x12835b0145706fbe, 0x243185be4ee4b28c, 0x550c7dc3d5ffb4e2,
    0x72be5d74f27b896f, 0x80deb1fe3b1696b1, 0x9bdc06a725c71235, 0xc19bf174cf692694,
    0xe49b69c19ef14ad2, 0xefbe4786384f25e3, 0x0fc19dc68b8cd5b5, 0x240ca1cc77ac9c65,
    0x2de92c6f592b0275, 0x4a7484aa6ea6e483, 0x5cb0a9dcbd41fbd4, 0x76f988da831153b5,
    0x983e5152ee66dfab, 0xa831c66d2db43210, 0xb00327c898fb213f, 0xbf597fc7beef0ee4,
    0xc6e00bf33da88fc2, 0xd5a79147930aa725, 0x06ca6351e003826f, 0x142929670a0e6e70,
    0x27b70a8546d22ffc, 0x2e1b21385c26c926, 0x4d2c6dfc5ac42aed, 0x53380d139d95b3df,
    0x650a73548baf63de, 0x766a0abb3c77b2a8, 0x81c2c92e47edaee6, 0x92722c851482353b,
    0xa2bfe8a14cf10364, 0xa81a664bbc423001, 0xc24b8b70d0f89791, 0xc76c51a30654be30,
    0xd192e819d6ef5218, 0xd69906245565a910, 0xf40e35855771202a, 0x106aa07032bbd1b8,
    0x19a4c116b8d2d0c8, 0x1e376c085141ab53, 0x2748774cdf8eeb99, 0x34b0bcb5e19b48a8,
    0x391c0cb3c5c95a63, 0x4ed8aa4ae3418acb, 0x5b9cca4f7763e373, 0x682e6ff3d6b2b8a3,
    0x748f82ee5defb2fc, 0x78a5636f43172f60, 0x84c87814a1f0ab72, 0x8cc702081a6439ec,
    0x90befffa23631e28, 0xa4506cebde82bde9, 0xbef9a3f7b2c67915, 0xc67178f2e372532b,
    0xca273eceea26619c, 0xd186b8c721c0c207, 0xeada7dd6cde0eb1e, 0xf57d4f7fee6ed178,
    0x06f067aa72176fba, 0x0a637dc5a2c898a6, 0x113f9804bef90dae, 0x1b710b35131c471b,
    0x28db77f523047d84, 0x32caab7b40c72493, 0x3c9ebe0a15c9bebc, 0x431d67c49c100d4c,
    0x4cc5d4becb3e42b6, 0x597f299cfc657e2a, 0x5fcb6fab3ad6faec, 0x6c44198c4a475817,
)

# FIPS 180-4 5.3.5 前8个素数平方根小数部分的前64比特
_SHA512_IV = (
    0x6a09e667f3bcc908, 0xbb67ae8584caa73b, 0x3c6ef372fe94f82b, 0xa54ff53a5f1d36f1,
    0x510e527fade682d1, 0x9b05688c2b3e6c1f, 0x1f83d9abfb41bd6b, 0x5be0cd19137e2179,
)

# FIPS 180-4 5.3.4 第9至16个素数平方根小数部分的前64比特
_SHA384_IV = (
    0xcbbb9d5dc1059ed8, 0x629a292a367cd507, 0x9159015a3070dd17, 0x152fecd8f70e5939,
    0x67332667ffc00b31, 0x8eb44a8768581511, 0xdb0c2e0d64f98fa7, 0x47b5481dbefa4fa4,
)


class SHA256Hash(MerkleDamgardHash):
    BLOCK_BYTE_LENGTH = 64
    DIGEST_BYTE_LENGTH = 32
    LENGTH_BYTE_LENGTH = 8

    def __init__(self):
        self._w = [0] * 64
        super().__init__()

    def _initial_value(self) -> tuple:
        return _SHA256_IV

    def _compress(self, block_in: memoryview):
        """FIPS 180-4 6.2.2"""
        w = self._w
        for t in range(16):
            w[t] = int.from_bytes(block_in[4 * t:4 * t + 4], byteorder='big', signed=False)
        for t in range(16, 64):
            s0 = rrs_32(w[t - 15], 7) ^ rrs_32(w[t - 15], 18) ^ (w[t - 15] >> 3)
            s1 = rrs_32(w[t - 2], 17) ^ rrs_32(w[t - 2], 19) ^ (w[t - 2] >> 10)
            w[t] = mod_adds_32(w[t - 16], s0, w[t - 7], s1)

        a, b, c, d, e, f, g, h = self._v
        for t in range(64):
            sigma1 = rrs_32(e, 6) ^ rrs_32(e, 11) ^ rrs_32(e, 25)
            ch = (e & f) ^ (~e & g)
            t1 = mod_adds_32(h, sigma1, ch, _SHA256_K[t], w[t])
            sigma0 = rrs_32(a, 2) ^ rrs_32(a, 13) ^ rrs_32(a, 22)
            maj = (a & b) ^ (a & c) ^ (b & c)
            t2 = mod_adds_32(sigma0, maj)
            h = g
            g = f
            f = e
            e = mod_adds_32(d, t1)
            d = c
            c = b
            b = a
            a = mod_adds_32(t1, t2)
        self._v = [mod_adds_32(v, n) for v, n in zip(self._v, (a, b, c, d, e, f, g, h))]

    def _output(self) -> bytes:
        result = bytearray()
        for n in self._v:
            result.extend(n.to_bytes(4, byteorder='big', signed=False))
        return bytes(result[0:self.DIGEST_BYTE_LENGTH])


class SHA512Hash(MerkleDamgardHash):
    BLOCK_BYTE_LENGTH = 128
    DIGEST_BYTE_LENGTH = 64
    LENGTH_BYTE_LENGTH = 16

    def __init__(self):
        self._w = [0] * 80
        super().__init__()

    def _initial_value(self) -> tuple:
        return _SHA512_IV

    def _compress(self, block_in: memoryview):
        """FIPS 180-4 6.4.2"""
        w = self._w
        for t in range(16):
            w[t] = int.from_bytes(block_in[8 * t:8 * t + 8], byteorder='big', signed=False)
        for t in range(16, 80):
            s0 = rrs_64(w[t - 15], 1) ^ rrs_64(w[t - 15], 8) ^ (w[t - 15] >> 7)
            s1 = rrs_64(w[t - 2], 19) ^ rrs_64(w[t - 2], 61) ^ (w[t - 2] >> 6)
            w[t] = mod_adds_64(w[t - 16], s0, w[t - 7], s1)

        a, b, c, d, e, f, g, h = self._v
        for t in range(80):
            sigma1 = rrs_64(e, 14) ^ rrs_64(e, 18) ^ rrs_64(e, 41)
            ch = (e & f) ^ (~e & g)
            t1 = mod_adds_64(h, sigma1, ch, _SHA512_K[t], w[t])
            sigma0 = rrs_64(a, 28) ^ rrs_64(a, 34) ^ rrs_64(a, 39)
            maj = (a & b) ^ (a & c) ^ (b & c)
            t2 = mod_adds_64(sigma0, maj)
            h = g
            g = f
            f = e
            e = mod_adds_64(d, t1)
            d = c
            c = b
            b = a
            a = mod_adds_64(t1, t2)
        self._v = [mod_adds_64(v, n) for v, n in zip(self._v, (a, b, c, d, e, f, g, h))]

    def _output(self) -> bytes:
        result = bytearray()
        for n in self._v:
            result.extend(n.to_bytes(8, byteorder='big', signed=False))
        return bytes(result[0:self.DIGEST_BYTE_LENGTH])


class SHA384Hash(SHA512Hash):
    """SHA-384与SHA-512的压缩函数相同，只是初始值不同并截取前48字节"""
    DIGEST_BYTE_LENGTH = 48

    def _initial_value(self) -> tuple:
        return _SHA384_IV


def sha256(message: Union[bytes, bytearray, memoryview]) -> bytes:
    return SHA256Hash().update(message).finalize()


def sha384(message: Union[bytes, bytearray, memoryview]) -> bytes:
    return SHA384Hash().update(message).finalize()


def sha512(message: Union[bytes, bytearray, memoryview]) -> bytes:
    return SHA512Hash().update(message).finalize()


def sha256_hmac(key: Union[bytes, bytearray, memoryview], message: Union[bytes, bytearray, memoryview]) -> bytes:
    return hmac(sha256, SHA256Hash.BLOCK_BYTE_LENGTH, key, message)


def sha384_hmac(key: Union[bytes, bytearray, memoryview], message: Union[bytes, bytearray, memoryview]) -> bytes:
    return hmac(sha384, SHA384Hash.BLOCK_BYTE_LENGTH, key, message)


def sha512_hmac(key: Union[bytes, bytearray, memoryview], message: Union[bytes, bytearray, memoryview]) -> bytes:
    return hmac(sha512, SHA512Hash.BLOCK_BYTE_LENGTH, key, message)
