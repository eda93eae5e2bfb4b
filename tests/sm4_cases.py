import secrets
import unittest
import logging

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from gmkit import *

logging.basicConfig(level=logging.DEBUG)

logger = logging.getLogger(__name__)


def pyca_sm4(key: bytes, mode, message: bytes, encrypt: bool = True) -> bytes:
    cipher = Cipher(algorithms.SM4(key), mode)
    codec = cipher.encryptor() if encrypt else cipher.decryptor()
    return codec.update(message) + codec.finalize()


class SM4TestCase(unittest.TestCase):
    SECRET_KEY = bytes.fromhex('2B7E151628AED2A6ABF7158809CF4F3C')
    IV = bytes.fromhex('000102030405060708090A0B0C0D0E0F')
    IV_COUNTER = bytes.fromhex('F0 F1 F2 F3 F4 F5 F6 F7 F8 F9 FA FB FC FD FE FF')
    MESSAGE = bytes.fromhex('6BC1BEE22E409F96E93D7E117393172A'
                            'AE2D8A571E03AC9C9EB76FAC45AF8E51'
                            '30C81C46A35CE411E5FBC1191A0A52EF'
                            'F69F2445DF4F9B17AD2B417BE66C3710')

    def test_sm4_block(self):
        # GB/T 32907-2016 A.1
        message = bytes.fromhex('01234567 89ABCDEF FEDCBA98 76543210')
        secret_key = bytes.fromhex('01234567 89ABCDEF FEDCBA98 76543210')
        cipher_text = sm4_encrypt_block(secret_key, message)

        self.assertEqual(cipher_text, bytes.fromhex('681EDF34 D206965E 86B3E94F 536E4246'))

        restored = sm4_decrypt_block(secret_key, cipher_text)
        self.assertEqual(message, restored)

        sm4 = SM4(secret_key.hex())
        self.assertEqual(sm4.encrypt_block(message), cipher_text)
        self.assertEqual(sm4.decrypt_block(cipher_text), message)

    def test_block_validation(self):
        with self.assertRaises(ValidationError):
            SM4(b'\x00' * 15)
        with self.assertRaises(ValidationError):
            SM4(b'\x00' * 16).encrypt_block(b'\x00' * 15)

    def _check_streaming(self, mode: Mode, assertion):
        enc = mode.encryptor()
        cipher_text = bytearray()
        for i in range(4):
            in_block = SM4TestCase.MESSAGE[i * 16: (i + 1) * 16]
            logger.debug('Plain:  %s', in_block.hex())
            cipher_block = enc.update(in_block)
            logger.debug('Cipher: %s', cipher_block.hex())
            self.assertEqual(bytes.fromhex(assertion[i]), cipher_block)
            cipher_text.extend(cipher_block)
        self.assertEqual(b'', enc.finalize())

        dec = mode.decryptor()
        restored = bytearray()
        for i in range(4):
            restore_block = dec.update(cipher_text[i * 16: (i + 1) * 16])
            self.assertEqual(restore_block, SM4TestCase.MESSAGE[i * 16: (i + 1) * 16])
            restored.extend(restore_block)
        restored.extend(dec.finalize())
        self.assertEqual(SM4TestCase.MESSAGE, restored)

    def test_sm4_ecb(self):
        ecb = ECB(SM4(SM4TestCase.SECRET_KEY))
        self._check_streaming(ecb, ('a51411ff04a711443891fce7ab842a29',
                                    'd5b50f46a9a730a0f590ffa776d99855',
                                    'c9a86a4d71447f4e873ada4f388af9b9',
                                    '2b25557b50514d155939e6ec940ad90e'))

    def test_sm4_cbc(self):
        cbc = CBC(SM4TestCase.IV, SM4(SM4TestCase.SECRET_KEY))
        self._check_streaming(cbc, ('AC529AF989A62FCE9CDDC5FFB84125CA',
                                    'B168DD69DB3C0EEA1AB16DE6AEA43C59',
                                    '2C15567BFF8F707486C202C7BE59101F',
                                    '74A629B350CD7E11BE99998AF5206D6C'))

    def test_sm4_ctr(self):
        ctr = CTR(SM4TestCase.IV_COUNTER, SM4(SM4TestCase.SECRET_KEY))
        self._check_streaming(ctr, ('14AE4A72B97A93CE1216CCD998E371C1',
                                    '60F7EF8B6344BD6DA1992505E5FC219B',
                                    '0BF057F86C5D75103C0F46519C7FB2E7',
                                    '292805035ADB9A90ECEF145359D7CF0E'))

    def test_sm4_cfb(self):
        cfb = CFB(SM4TestCase.IV, SM4(SM4TestCase.SECRET_KEY))
        self._check_streaming(cfb, ('bc710d762d070b26361da82b54565e46',
                                    'a4cd42786a3a5293a3c6cbc123f0b354',
                                    '407055b1c1a5d9982c187d5c3ee0ced8',
                                    '4b82c40f2f0a4e0341797f1f307b8047'))

    def test_sm4_ofb(self):
        ofb = OFB(SM4TestCase.IV, SM4(SM4TestCase.SECRET_KEY))
        self._check_streaming(ofb, ('bc710d762d070b26361da82b54565e46',
                                    '07a0c62834740ad3240d239125e11621',
                                    'd476b21cc9f04951f0741d2ef9e09498',
                                    '1584fc142bf13aa626b82f9d7d076cce'))

    def test_against_pyca(self):
        for _ in range(10):
            key = secrets.token_bytes(16)
            iv = secrets.token_bytes(16)
            message = secrets.token_bytes(16 * secrets.choice(range(1, 8)))
            odd_message = message + secrets.token_bytes(secrets.choice(range(1, 16)))
            sm4 = SM4(key)

            self.assertEqual(sm4_encrypt(key, message, 'ECB', 'NONE'), pyca_sm4(key, modes.ECB(), message))
            self.assertEqual(sm4_encrypt(key, message, 'CBC', 'NONE', iv=iv),
                             pyca_sm4(key, modes.CBC(iv), message))
            self.assertEqual(sm4_encrypt(key, odd_message, 'CTR', iv=iv), pyca_sm4(key, modes.CTR(iv), odd_message))
            self.assertEqual(sm4_encrypt(key, odd_message, 'CFB', iv=iv), pyca_sm4(key, modes.CFB(iv), odd_message))
            self.assertEqual(sm4_encrypt(key, odd_message, 'OFB', iv=iv), pyca_sm4(key, modes.OFB(iv), odd_message))

            # CFB8的第一个字节与CFB128相同
            cfb8 = CFB(iv, sm4, stream_unit_byte_len=1)
            enc = cfb8.encryptor()
            cipher_text = enc.update(odd_message) + enc.finalize()
            self.assertEqual(len(cipher_text), len(odd_message))
            self.assertEqual(cipher_text[0], pyca_sm4(key, modes.CFB(iv), odd_message)[0])
            dec = cfb8.decryptor()
            self.assertEqual(dec.update(cipher_text) + dec.finalize(), odd_message)

    def test_one_shot(self):
        key = '0123456789abcdeffedcba9876543210'
        cipher_text = sm4_encrypt(key, 'Hello SM4')
        self.assertEqual(cipher_text.hex(), 'e7181e1ee988f3f357bdf495525aa822')
        self.assertEqual(sm4_decrypt(key, cipher_text), b'Hello SM4')
        self.assertEqual(sm4_decrypt(key, cipher_text.hex()), b'Hello SM4')

        iv = 'fedcba98765432100123456789abcdef'
        cipher_text = sm4_encrypt(key, 'Hello SM4 CBC Mode', CipherMode.CBC, PaddingMode.PKCS7, iv=iv)
        self.assertEqual(cipher_text.hex(), '1359f94c885b7d0f7d9e5f97b387f0bccd12258620da31b0f3458bdbf3b5e5ba')
        self.assertEqual(sm4_decrypt(key, cipher_text, 'cbc', 'pkcs7', iv=iv), b'Hello SM4 CBC Mode')

    def test_ctr_counter_wraps(self):
        cipher_text = sm4_encrypt('0123456789abcdeffedcba9876543210', b'\x00' * 32, 'CTR', iv='ff' * 16)
        self.assertEqual(cipher_text.hex(), '6811af7e097364e786fb45ce5d9a60f0'
                                            '2677f46b09c122cc975533105bd4a22a')

    def test_ecb_repeats_other_modes_hide(self):
        key = secrets.token_bytes(16)
        iv = secrets.token_bytes(16)
        message = b'0123456789abcdef' * 2
        ecb = sm4_encrypt(key, message, 'ECB', 'NONE')
        self.assertEqual(ecb[0:16], ecb[16:32])
        for mode in ('CBC', 'CTR', 'CFB', 'OFB'):
            cipher_text = sm4_encrypt(key, message, mode, 'NONE', iv=iv)
            self.assertNotEqual(cipher_text[0:16], cipher_text[16:32], mode)
        gcm = sm4_encrypt(key, message, 'GCM', iv=iv[0:12])
        self.assertNotEqual(gcm[0:16], gcm[16:32])

    def test_aligned_pkcs7(self):
        key = secrets.token_bytes(16)
        iv = secrets.token_bytes(16)
        for n in (16, 32):
            message = b'q' * n
            for mode in ('ECB', 'CBC'):
                cipher_text = sm4_encrypt(key, message, mode, 'PKCS7', iv=iv)
                self.assertEqual(len(cipher_text), n + 16)
                self.assertEqual(sm4_decrypt(key, cipher_text, mode, 'PKCS7', iv=iv), message)

            # 最后一个分组为完整的填充分组
            cipher_text = sm4_encrypt(key, message, 'CBC', 'PKCS7', iv=iv)
            tail = sm4_decrypt(key, cipher_text, 'CBC', 'NONE', iv=iv)[n:]
            self.assertEqual(tail, b'\x10' * 16)

    def test_padding_lengths(self):
        key = secrets.token_bytes(16)
        iv = secrets.token_bytes(16)
        for n in range(0, 40):
            message = secrets.token_bytes(n)
            for mode in ('ECB', 'CBC'):
                cipher_text = sm4_encrypt(key, message, mode, iv=iv)
                self.assertEqual(len(cipher_text), (n // 16 + 1) * 16)
                self.assertEqual(sm4_decrypt(key, cipher_text, mode, iv=iv), message)
            for mode in ('CTR', 'CFB', 'OFB'):
                # 序列密码式的工作模式忽略填充
                cipher_text = sm4_encrypt(key, message, mode, 'PKCS7', iv=iv)
                self.assertEqual(len(cipher_text), n)
                self.assertEqual(sm4_decrypt(key, cipher_text, mode, 'PKCS7', iv=iv), message)

    def test_stream_mode_ignores_padding(self):
        key = secrets.token_bytes(16)
        iv = secrets.token_bytes(16)
        with self.assertLogs('gmkit.sm4', level='DEBUG') as cm:
            cipher_text = sm4_encrypt(key, b'sixteen byte msg', 'CTR', 'PKCS7', iv=iv)
        self.assertEqual(len(cipher_text), 16)
        self.assertTrue(any('CTR mode ignores PKCS7 padding' in line for line in cm.output))

    def test_streaming_codec(self):
        key = secrets.token_bytes(16)
        iv = secrets.token_bytes(16)
        message = secrets.token_bytes(100)
        for mode in ('ECB', 'CBC', 'CTR', 'CFB', 'OFB'):
            enc = SM4Encryptor(key, mode, iv=iv)
            cipher_text = bytearray()
            for i in range(0, len(message), 7):
                cipher_text.extend(enc.update(message[i:i + 7]))
            cipher_text.extend(enc.finalize())
            self.assertEqual(bytes(cipher_text), sm4_encrypt(key, message, mode, iv=iv), mode)

            dec = SM4Decryptor(key, mode, iv=iv)
            restored = bytearray()
            for i in range(0, len(cipher_text), 5):
                restored.extend(dec.update(cipher_text[i:i + 5]))
            restored.extend(dec.finalize())
            self.assertEqual(bytes(restored), message, mode)

    def test_validation_errors(self):
        key = secrets.token_bytes(16)
        with self.assertRaises(ValidationError):
            sm4_encrypt(key, b'\x00' * 15, 'ECB', 'NONE')
        with self.assertRaises(ValidationError):
            sm4_encrypt(key, b'message', 'CBC')
        with self.assertRaises(ValidationError):
            sm4_encrypt(key, b'message', 'CBC', iv=b'\x00' * 8)
        with self.assertRaises(ValidationError):
            sm4_encrypt(key, b'message', 'XTS')
        with self.assertRaises(ValidationError):
            sm4_encrypt(key, b'message', 'ECB', 'ISO10126')
        with self.assertRaises(ValidationError):
            sm4_encrypt(b'\x00' * 8, b'message')
        with self.assertRaises(ValidationError):
            sm4_decrypt(key, b'\x00' * 17)

        # 错误的密钥解密，填充校验失败或者得到错误的明文
        cipher_text = sm4_encrypt(key, b'sixteen byte msg' * 2)
        try:
            restored = sm4_decrypt(secrets.token_bytes(16), cipher_text)
        except ValidationError:
            restored = None
        self.assertNotEqual(restored, b'sixteen byte msg' * 2)

    def test_gcm_one_shot(self):
        # RFC 8998 A.1
        key = '0123456789ABCDEFFEDCBA9876543210'
        iv = '00001234567800000000ABCD'
        aad = bytes.fromhex('FEEDFACEDEADBEEFFEEDFACEDEADBEEFABADDAD2')
        p = bytes.fromhex('AAAAAAAAAAAAAAAABBBBBBBBBBBBBBBBCCCCCCCCCCCCCCCCDDDDDDDDDDDDDDDD'
                          'EEEEEEEEEEEEEEEEFFFFFFFFFFFFFFFFEEEEEEEEEEEEEEEEAAAAAAAAAAAAAAAA')
        ct = sm4_encrypt(key, p, 'GCM', iv=iv, aad=aad)
        self.assertEqual(ct.hex(), '17f399f08c67d5ee19d0dc9969c4bb7d5fd46fd3756489069157b282bb200735'
                                   'd82710ca5c22f0ccfa7cbf93d496ac15a56834cbcf98c397b4024a2691233b8d'
                                   '83de3541e4c2b58177e065a9bf7b62ec')
        self.assertEqual(sm4_decrypt(key, ct, 'GCM', iv=iv, aad=aad), p)

        tampered = bytearray(ct)
        tampered[0] ^= 0x01
        with self.assertRaises(AuthenticationFailure):
            sm4_decrypt(key, bytes(tampered), 'GCM', iv=iv, aad=aad)
        with self.assertRaises(AuthenticationFailure):
            sm4_decrypt(key, ct, 'GCM', iv=iv, aad=b'other')


if __name__ == '__main__':
    unittest.main()
