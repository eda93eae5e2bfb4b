from unittest import TestCase, mock
import logging
import threading

from gmkit import *
from gmkit.sm2 import SM2_N, SM2_P

logging.basicConfig(level=logging.DEBUG)

PRIVATE_KEY = '3945208F7B2144B13F36E38AC6D39F95889393692860B51A42FB81EF4DF7C5B8'
PUBLIC_X = '09f9df311e5421a150dd7d161e4bc5c672179fad1833fc076bb08ff356f35020'
PUBLIC_Y = 'ccea490ce26775a52dc6ea718cc1aa600aed05fbf35e084a6632f6072da9ad13'
K = bytes.fromhex('59276E27D506861A16680F3AD9C02DCCEF3CC1FA3CDBE4CE6D54B80DEAC1BC21')


class FixedRandomSource(RandomSource):
    def __init__(self, *chunks: bytes):
        self._chunks = list(chunks)

    def fill(self, buffer: bytearray) -> None:
        buffer[:] = self._chunks.pop(0)


class SM2KeyTestCase(TestCase):
    def test_public_key(self):
        prikey = SM2PrivateKey.from_hex(PRIVATE_KEY)
        pubkey = prikey.get_public_key()
        self.assertEqual(pubkey.to_hex(), '04' + PUBLIC_X + PUBLIC_Y)
        self.assertEqual(pubkey, SM2PublicKey.from_coordinates(bytes.fromhex(PUBLIC_X), int(PUBLIC_Y, 16)))
        self.assertEqual(pubkey.generate_z().hex(),
                         'b2e14c5c79c6df5b85f4fe7ed8db7a262b9da7e07ccb0ea9f4747b8ccda8a4f3')
        self.assertEqual(generate_z(pubkey.point, '1234567812345678'), pubkey.generate_z())
        self.assertNotEqual(pubkey.generate_z(b'ALICE123@YAHOO.COM'), pubkey.generate_z())

        self.assertEqual(prikey.to_hex(), PRIVATE_KEY.lower())
        self.assertNotIn(PRIVATE_KEY.lower(), repr(prikey))
        self.assertEqual(SM2PrivateKey(int(PRIVATE_KEY, 16)), prikey)

    def test_compressed(self):
        pubkey = SM2PublicKey.from_hex('04' + PUBLIC_X + PUBLIC_Y)
        compressed = pubkey.to_bytes(compressed=True)
        self.assertEqual(len(compressed), 33)
        self.assertEqual(compressed[0], 0x03)  # y为奇数
        self.assertEqual(SM2PublicKey.from_bytes(compressed), pubkey)

        for _ in range(10):
            pubkey = generate_keypair().public_key
            self.assertEqual(SM2PublicKey.from_hex(pubkey.to_hex(True)), pubkey)

    def test_point(self):
        g = SM2_POINT_G
        self.assertTrue(g.on_curve())
        self.assertEqual(g + g, g * 2)
        self.assertEqual(g * 3, 2 * g + g)
        self.assertTrue((g * SM2_N).infinite)
        self.assertTrue((g + (-g)).infinite)
        self.assertEqual(g + SM2Point.infinity(), g)
        self.assertEqual(SM2Point.from_bytes(g.to_bytes()), g)

        with self.assertRaises(CryptoError):
            SM2Point(1, 1)
        with self.assertRaises(CryptoError):
            SM2Point(SM2_P, 1)
        with self.assertRaises(CryptoError):
            SM2Point.infinity().to_bytes()

    def test_keypair(self):
        keypair = generate_keypair()
        self.assertEqual(keypair.private_key.public_key, keypair.public_key)
        self.assertEqual(len(keypair.private_key_hex), 64)
        self.assertEqual(len(keypair.public_key_hex), 130)
        self.assertTrue(1 <= keypair.private_key.value <= SM2_N - 2)

        keypair = generate_keypair(FixedRandomSource(bytes.fromhex(PRIVATE_KEY)))
        self.assertEqual(keypair.public_key_hex, '04' + PUBLIC_X + PUBLIC_Y)

    def test_validation(self):
        with self.assertRaises(CryptoError):
            SM2PrivateKey(0)
        with self.assertRaises(CryptoError):
            SM2PrivateKey(SM2_N - 1)
        with self.assertRaises(ValidationError):
            SM2PrivateKey.from_bytes(b'\x01' * 31)
        with self.assertRaises(ValidationError):
            SM2PublicKey.from_bytes(b'\x05' + b'\x00' * 64)
        with self.assertRaises(ValidationError):
            SM2PublicKey.from_hex('04' + PUBLIC_X)
        with self.assertRaises(CryptoError):
            SM2PublicKey.from_hex('04' + PUBLIC_X + PUBLIC_X)
        with self.assertRaises(ValidationError):
            generate_z(SM2_POINT_G, b'a' * 8192)


class SM2SignatureTestCase(TestCase):
    def test_known_signature(self):
        """GB/T 32918.5-2017 附录A 数字签名示例"""
        prikey = SM2PrivateKey.from_hex(PRIVATE_KEY)
        signature = prikey.sign('message digest', random_source=FixedRandomSource(K))
        self.assertEqual(signature.hex(),
                         'f5a03b0648d2c4630eeac513e1bb81a15944da3827d5b74143ac7eaceee720b3'
                         'b1b6aa29df212fd8763182bc0d421ca1bb9038fd1f7f42d4840b69c485bbc1aa')
        self.assertTrue(prikey.public_key.verify(b'message digest', signature))
        self.assertTrue(sm2_verify('04' + PUBLIC_X + PUBLIC_Y, 'message digest', signature.hex()))

        der = sm2_sign(PRIVATE_KEY, 'message digest', signature_format='DER', random_source=FixedRandomSource(K))
        self.assertEqual(der_to_raw(der), signature)
        self.assertTrue(sm2_verify(prikey.public_key, 'message digest', der, signature_format=SignatureFormat.DER))

    def test_sign_verify(self, message='A fox jumps over the lazy dog.'):
        keypair = generate_keypair()
        signature = sm2_sign(keypair.private_key, message)
        print("Signature:", signature.hex().upper())
        self.assertEqual(len(signature), 64)
        self.assertTrue(sm2_verify(keypair.public_key, message, signature))

        self.assertFalse(sm2_verify(keypair.public_key, message + '!', signature))
        self.assertFalse(sm2_verify(generate_keypair().public_key, message, signature))
        self.assertFalse(sm2_verify(keypair.public_key, message, signature, uid=b'ALICE123@YAHOO.COM'))

        tampered = bytearray(signature)
        tampered[40] ^= 0x01
        self.assertFalse(sm2_verify(keypair.public_key, message, tampered))

        signature = sm2_sign(keypair.private_key, message, uid='ALICE123@YAHOO.COM')
        self.assertTrue(sm2_verify(keypair.public_key, message, signature, uid=b'ALICE123@YAHOO.COM'))

    def test_invalid_signature(self):
        pubkey = SM2PublicKey.from_hex('04' + PUBLIC_X + PUBLIC_Y)
        self.assertFalse(pubkey.verify(b'message', b'\x00' * 64))
        self.assertFalse(pubkey.verify(b'message', SM2_N.to_bytes(32, 'big') + b'\x01' * 32))
        self.assertFalse(pubkey.verify(b'message', encode_signature(1, 0), signature_format='DER'))
        # r + s == n
        self.assertFalse(pubkey.verify(b'message', (1).to_bytes(32, 'big') + (SM2_N - 1).to_bytes(32, 'big')))

        with self.assertRaises(ValidationError):
            pubkey.verify(b'message', b'\x01' * 63)
        with self.assertRaises(EncodingError):
            pubkey.verify(b'message', b'\x30\x01\x02', signature_format='DER')
        with self.assertRaises(ValidationError):
            pubkey.verify(b'message', b'\x01' * 64, signature_format='PEM')

    def test_retry_limit(self):
        prikey = SM2PrivateKey.from_hex(PRIVATE_KEY)
        with mock.patch('gmkit.sm2.SM2_SIGN_RETRY_LIMIT', 0):
            with self.assertRaises(CryptoError):
                prikey.sign(b'message')

        # 随机数来源始终给出0
        with self.assertRaises(CryptoError):
            prikey.sign(b'message', random_source=FixedRandomSource(*([b'\x00' * 32] * 200)))


class SM2EncryptionTestCase(TestCase):
    C1 = ('0404ebfc718e8d1798620432268e77feb6415e2ede0e073c0f4f640ecd2e149a73'
          'e858f9d81e5430a57b36daab8f950a3c64e6ee6a63094d99283aff767e124df0')
    C3 = '59983c18f809e262923c53aec295d30383b54e39d609d160afcb1908d0bd8766'
    C2 = '21886ca989ca9c7d58087307ca93092d651efa'

    def test_known_cipher_text(self):
        """GB/T 32918.5-2017 附录C 公钥加密示例"""
        pubkey = SM2PublicKey.from_hex('04' + PUBLIC_X + PUBLIC_Y)
        cipher_text = pubkey.encrypt('encryption standard', random_source=FixedRandomSource(K))
        self.assertEqual(cipher_text.hex(), self.C1 + self.C3 + self.C2)

        cipher_text = sm2_encrypt(pubkey, b'encryption standard', mode='C1C2C3', random_source=FixedRandomSource(K))
        self.assertEqual(cipher_text.hex(), self.C1 + self.C2 + self.C3)

        self.assertEqual(sm2_decrypt(PRIVATE_KEY, self.C1 + self.C3 + self.C2), b'encryption standard')
        self.assertEqual(sm2_decrypt(int(PRIVATE_KEY, 16), self.C1 + self.C2 + self.C3, mode=SM2CipherMode.C1C2C3),
                         b'encryption standard')

    def test_compressed_c1(self):
        c1 = SM2Point.from_bytes(bytes.fromhex(self.C1)).to_bytes(compressed=True)
        cipher_text = c1 + bytes.fromhex(self.C3 + self.C2)
        self.assertEqual(sm2_decrypt(PRIVATE_KEY, cipher_text), b'encryption standard')

    def test_encrypt_decrypt(self, message='A fox jumps over the lazy dog.'):
        keypair = generate_keypair()
        for mode in SM2CipherMode:
            cipher_text = sm2_encrypt(keypair.public_key, message, mode)
            print("Cipher Text:", cipher_text.hex().upper())
            self.assertEqual(len(cipher_text), 65 + 32 + len(message))
            self.assertEqual(cipher_text[0], 0x04)
            self.assertEqual(sm2_decrypt(keypair.private_key, cipher_text, mode).decode(), message)

        # 两次加密使用不同的k
        self.assertNotEqual(sm2_encrypt(keypair.public_key, message), sm2_encrypt(keypair.public_key, message))

        cipher_text = sm2_encrypt(keypair.public_key, b'')
        self.assertEqual(len(cipher_text), 97)
        self.assertEqual(sm2_decrypt(keypair.private_key, cipher_text), b'')

    def test_tampered(self):
        cipher_text = bytearray.fromhex(self.C1 + self.C3 + self.C2)
        for pos in (70, len(cipher_text) - 1):
            cipher_text[pos] ^= 0x01
            with self.assertRaises(AuthenticationFailure):
                sm2_decrypt(PRIVATE_KEY, cipher_text)
            cipher_text[pos] ^= 0x01

        # 顺序不一致
        with self.assertRaises(AuthenticationFailure):
            sm2_decrypt(PRIVATE_KEY, self.C1 + self.C3 + self.C2, 'C1C2C3')
        with self.assertRaises(AuthenticationFailure):
            sm2_decrypt(generate_keypair().private_key, self.C1 + self.C3 + self.C2)

    def test_invalid_cipher_text(self):
        with self.assertRaises(ValidationError):
            sm2_decrypt(PRIVATE_KEY, b'')
        with self.assertRaises(ValidationError):
            sm2_decrypt(PRIVATE_KEY, bytes.fromhex(self.C1) + b'\x00' * 31)
        with self.assertRaises(ValidationError):
            sm2_decrypt(PRIVATE_KEY, '05' + self.C1[2:] + self.C3 + self.C2)
        with self.assertRaises(ValidationError):
            sm2_encrypt('04' + PUBLIC_X + PUBLIC_Y, b'message', mode='C2C1C3')


class SM2ConcurrencyTestCase(TestCase):
    def test_threads(self):
        """多个线程同时签名、验签、加解密"""
        thread_count = 8
        barrier = threading.Barrier(thread_count)
        shared = SM2PrivateKey.from_hex(PRIVATE_KEY)
        errors = []

        def worker(index: int):
            try:
                barrier.wait()
                prikey = SM2PrivateKey()
                message = f'message {index}'.encode()
                signature = sm2_sign(prikey, message)
                if not sm2_verify(prikey.public_key, message, signature):
                    errors.append(f'verify {index}')
                if not shared.public_key.verify(message, shared.sign(message)):
                    errors.append(f'shared verify {index}')
                if shared.decrypt(shared.public_key.encrypt(message)) != message:
                    errors.append(f'decrypt {index}')
            except Exception as e:
                errors.append(f'{index}: {e!r}')

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(thread_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])

    def test_g_table_ready(self):
        from gmkit.sm2 import _G_POW_TWO_EXP
        self.assertEqual(len(_G_POW_TWO_EXP), 256)
        self.assertEqual(_G_POW_TWO_EXP[0], SM2_POINT_G)
        self.assertEqual(_G_POW_TWO_EXP[10], SM2_POINT_G * (1 << 10))
        self.assertEqual(_G_POW_TWO_EXP[255], SM2_POINT_G * (1 << 255))
