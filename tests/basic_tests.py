from unittest import TestCase
import logging

from gmkit import *
from gmkit.calculation import pow_mod_prime, inverse_mod_prime, square_root_mod_prime, uint_incr, rls_32, \
    xor_on_bytes, mul_gf_2_128
from gmkit.sm2 import SM2_P, SM2_Y, p_mul, p_pow

logging.basicConfig(level=logging.DEBUG)


def primes(n):
    out = list()
    sieve = [True] * (n + 1)
    for p in range(2, n + 1):
        if sieve[p]:
            out.append(p)
            for i in range(p, n + 1, p):
                sieve[i] = False
    return out


class FundamentalTests(TestCase):
    def test_pow_mod(self):
        n = 127
        for k in range(1000):
            self.assertEqual(p_pow(n, k), n ** k % SM2_P)
        self.assertEqual(pow_mod_prime(SM2_P, SM2_Y, SM2_P - 2), pow(SM2_Y, SM2_P - 2, SM2_P))

    def test_square_root_mod_prime(self):
        # 只覆盖p ≡ 3 (mod 4)和p ≡ 5 (mod 8)两种情况
        for p in [p for p in primes(200)[1:] if p % 8 != 1]:
            for n in range(0, p):
                q = square_root_mod_prime(p, n)
                if q is not None:
                    self.assertEqual(q ** 2 % p, n)
                else:
                    for i in range(p):
                        self.assertNotEqual(i ** 2 % p, n)

        with self.assertRaises(ValidationError):
            square_root_mod_prime(17, 2)

    def test_inverse(self):
        n = p_mul(2, SM2_Y)
        i = inverse_mod_prime(SM2_P, n)
        self.assertEqual((n * i) % SM2_P, 1)

        with self.assertRaises(CryptoError):
            inverse_mod_prime(SM2_P, 0)
        with self.assertRaises(CryptoError):
            inverse_mod_prime(SM2_P, SM2_P)

    def test_uint_incr(self):
        counter = bytearray.fromhex('00ff')
        uint_incr(counter)
        self.assertEqual(counter, bytearray.fromhex('0100'))

        counter = bytearray(b'\xff' * 16)
        uint_incr(counter)
        self.assertEqual(counter, bytearray(16))

        # 只对最后4字节计数
        counter = bytearray.fromhex('000000000000000000000000ffffffff')
        uint_incr(counter, 4)
        self.assertEqual(counter, bytearray(16))

        counter = bytearray.fromhex('0102030405060708090a0b0c0d0e0f10')
        uint_incr(counter, 4)
        self.assertEqual(counter.hex(), '0102030405060708090a0b0c0d0e0f11')

    def test_bit_operations(self):
        self.assertEqual(rls_32(0x80000001, 1), 0x00000003)
        self.assertEqual(rls_32(0x12345678, 32), 0x12345678)
        self.assertEqual(xor_on_bytes(b'\x0f\xf0', b'\xff\xff'), b'\xf0\x0f')
        self.assertEqual(xor_on_bytes(b'\x0f\xf0', b'\xff\xff', bytes_or_int='int'), 0xf00f)

    def test_gf_2_128(self):
        one = 1 << 127  # x^0
        u = 0x66e94bd4ef8a2c3b884cfa59ca342b2e
        self.assertEqual(mul_gf_2_128(u, one), u)
        self.assertEqual(mul_gf_2_128(one, u), u)
        self.assertEqual(mul_gf_2_128(u, 0), 0)
        v = 0x0388dace60b6a392f328c2b971b2fe78
        self.assertEqual(mul_gf_2_128(u, v), mul_gf_2_128(v, u))


class EncodingTests(TestCase):
    def test_hex(self):
        self.assertEqual(hex_to_bytes('00ff10'), b'\x00\xff\x10')
        self.assertEqual(hex_to_bytes('00 FF\n10'), b'\x00\xff\x10')
        self.assertEqual(hex_to_bytes(''), b'')
        self.assertEqual(bytes_to_hex(b'\xab\xcd'), 'abcd')

        with self.assertRaises(ValidationError):
            hex_to_bytes('abc')
        with self.assertRaises(ValidationError):
            hex_to_bytes('zz')
        with self.assertRaises(ValidationError):
            hex_to_bytes(b'00')

    def test_base64(self):
        self.assertEqual(base64_encode(b'hello'), 'aGVsbG8=')
        self.assertEqual(base64_decode('aGVsbG8='), b'hello')
        with self.assertRaises(ValidationError):
            base64_decode('aGVsbG8')
        with self.assertRaises(ValidationError):
            base64_decode('a*GVsbG8=')

    def test_utf8(self):
        self.assertEqual(utf8_encode('国密'), bytes.fromhex('e59bbde5af86'))
        self.assertEqual(utf8_decode(bytes.fromhex('e59bbde5af86')), '国密')
        with self.assertRaises(ValidationError):
            utf8_decode(b'\xff\xfe')

    def test_normalization(self):
        self.assertEqual(to_octets('0102'), b'\x01\x02')
        self.assertEqual(to_octets(bytearray(b'\x01\x02')), b'\x01\x02')
        self.assertEqual(to_message('abc'), b'abc')
        self.assertEqual(to_message(memoryview(b'abc')), b'abc')
        with self.assertRaises(ValidationError):
            to_octets(12)
        with self.assertRaises(ValidationError):
            to_message(None)


class OptionTests(TestCase):
    def test_parse_option(self):
        self.assertIs(parse_option(CipherMode, 'cbc'), CipherMode.CBC)
        self.assertIs(parse_option(CipherMode, CipherMode.GCM), CipherMode.GCM)
        self.assertIs(parse_option(PaddingMode, None), PaddingMode.NONE)
        self.assertIs(parse_option(PaddingMode, 'pkcs7'), PaddingMode.PKCS7)
        self.assertIs(parse_option(SM2CipherMode, 'c1c2c3'), SM2CipherMode.C1C2C3)
        self.assertIs(parse_option(SignatureFormat, 'DER'), SignatureFormat.DER)

        with self.assertRaises(ValidationError):
            parse_option(CipherMode, 'XTS')
        with self.assertRaises(ValidationError):
            parse_option(CipherMode, None)

    def test_mode_properties(self):
        self.assertFalse(CipherMode.ECB.stream_like)
        self.assertFalse(CipherMode.CBC.stream_like)
        self.assertTrue(CipherMode.CTR.stream_like)
        self.assertTrue(CipherMode.GCM.stream_like)
        self.assertFalse(CipherMode.ECB.requires_iv)
        self.assertTrue(CipherMode.OFB.requires_iv)


class FixedRandomSource(RandomSource):
    def __init__(self, *chunks: bytes):
        self._chunks = list(chunks)

    def fill(self, buffer: bytearray) -> None:
        buffer[:] = self._chunks.pop(0)


class RandomSourceTests(TestCase):
    def test_system_source(self):
        source = default_random_source()
        self.assertIsInstance(source, SystemRandomSource)
        a = source.random_bytes(32)
        b = source.random_bytes(32)
        self.assertEqual(len(a), 32)
        self.assertNotEqual(a, b)

    def test_degraded_source(self):
        with self.assertLogs('gmkit.rng', level='WARNING'):
            source = DegradedRandomSource(seed=1)
        self.assertEqual(source.random_bytes(16), DegradedRandomSource(seed=1).random_bytes(16))

    def test_random_scalar(self):
        for _ in range(100):
            k = random_scalar(1000)
            self.assertTrue(1 <= k < 1000)

        # 超出范围的值被丢弃
        source = FixedRandomSource(b'\x00\x00', b'\x03\xe8', b'\x00\x07')
        self.assertEqual(random_scalar(1000, source), 7)

        with self.assertRaises(CryptoError):
            random_scalar(1000, FixedRandomSource(*([b'\x00\x00'] * 200)))
        with self.assertRaises(ValidationError):
            random_scalar(2)
