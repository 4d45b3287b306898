import base64
import unittest

from onion_network.errors import DecryptionError, KeyCodecError
from onion_network.key_codec import RSA_MAX_PLAINTEXT, KeyCodec, SymmetricKey


def b64(text):
    return base64.b64encode(text.encode()).decode()


class TestRsa(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.pair = KeyCodec.generate_rsa_key_pair()
        cls.other = KeyCodec.generate_rsa_key_pair()

    def test_round_trip(self):
        for message in ("hello", "", "x" * RSA_MAX_PLAINTEXT):
            wrapped = KeyCodec.rsa_encrypt(b64(message), self.pair.public_key)
            self.assertEqual(KeyCodec.rsa_decrypt(wrapped, self.pair.private_key), b64(message))

    def test_accepts_exported_public_key(self):
        pub_text = KeyCodec.export_pub_key(self.pair.public_key)
        wrapped = KeyCodec.rsa_encrypt(b64("abc"), pub_text)
        self.assertEqual(KeyCodec.rsa_decrypt(wrapped, self.pair.private_key), b64("abc"))

    def test_ciphertext_is_344_chars(self):
        wrapped = KeyCodec.rsa_encrypt(b64("k" * 32), self.pair.public_key)
        self.assertEqual(len(wrapped), 344)

    def test_rejects_oversized_plaintext(self):
        with self.assertRaises(KeyCodecError):
            KeyCodec.rsa_encrypt(b64("x" * (RSA_MAX_PLAINTEXT + 1)), self.pair.public_key)

    def test_wrong_private_key(self):
        wrapped = KeyCodec.rsa_encrypt(b64("secret"), self.pair.public_key)
        with self.assertRaises(DecryptionError):
            KeyCodec.rsa_decrypt(wrapped, self.other.private_key)

    def test_garbage_ciphertext(self):
        with self.assertRaises(DecryptionError):
            KeyCodec.rsa_decrypt("not base64!!", self.pair.private_key)
        with self.assertRaises(DecryptionError):
            KeyCodec.rsa_decrypt(b64("short"), self.pair.private_key)

    def test_export_import_round_trip(self):
        pub_text = KeyCodec.export_pub_key(self.pair.public_key)
        prv_text = KeyCodec.export_prv_key(self.pair.private_key)
        self.assertEqual(KeyCodec.export_pub_key(KeyCodec.import_pub_key(pub_text)), pub_text)
        self.assertEqual(KeyCodec.export_prv_key(KeyCodec.import_prv_key(prv_text)), prv_text)
        self.assertIsNone(KeyCodec.export_prv_key(None))

    def test_key_kinds_are_not_interchangeable(self):
        prv_text = KeyCodec.export_prv_key(self.pair.private_key)
        pub_text = KeyCodec.export_pub_key(self.pair.public_key)
        sym_text = KeyCodec.export_sym_key(KeyCodec.generate_symmetric_key())
        with self.assertRaises(KeyCodecError):
            KeyCodec.import_sym_key(prv_text)
        with self.assertRaises(KeyCodecError):
            KeyCodec.import_prv_key(sym_text)
        with self.assertRaises(KeyCodecError):
            KeyCodec.import_pub_key(prv_text)
        with self.assertRaises(KeyCodecError):
            KeyCodec.import_prv_key(pub_text)
        with self.assertRaises(KeyCodecError):
            KeyCodec.export_pub_key(self.pair.private_key)


class TestSymmetric(unittest.TestCase):
    def test_round_trip(self):
        key = KeyCodec.generate_symmetric_key()
        for message in ("hello", "", "0000004001" + "é" * 50, "z" * 5000):
            self.assertEqual(KeyCodec.sym_decrypt(key, KeyCodec.sym_encrypt(key, message)), message)

    def test_decrypt_with_exported_key_text(self):
        key = KeyCodec.generate_symmetric_key()
        encrypted = KeyCodec.sym_encrypt(key, "payload")
        self.assertEqual(KeyCodec.sym_decrypt(KeyCodec.export_sym_key(key), encrypted), "payload")

    def test_iv_freshness(self):
        key = KeyCodec.generate_symmetric_key()
        self.assertNotEqual(KeyCodec.sym_encrypt(key, "same"), KeyCodec.sym_encrypt(key, "same"))
        self.assertNotEqual(KeyCodec.sym_encrypt(key, ""), KeyCodec.sym_encrypt(key, ""))

    def test_fresh_keys(self):
        self.assertNotEqual(KeyCodec.generate_symmetric_key(), KeyCodec.generate_symmetric_key())
        key = KeyCodec.generate_symmetric_key()
        self.assertEqual(len(key.raw), 32)
        self.assertEqual(KeyCodec.import_sym_key(KeyCodec.export_sym_key(key)), key)

    def test_truncated_ciphertext(self):
        key = KeyCodec.generate_symmetric_key()
        encrypted = base64.b64decode(KeyCodec.sym_encrypt(key, "some longer message here"))
        with self.assertRaises(DecryptionError):
            KeyCodec.sym_decrypt(key, base64.b64encode(encrypted[:20]).decode())
        with self.assertRaises(DecryptionError):
            KeyCodec.sym_decrypt(key, base64.b64encode(encrypted[:10]).decode())

    def test_wrong_key_fails(self):
        key = KeyCodec.generate_symmetric_key()
        encrypted = KeyCodec.sym_encrypt(key, "message for the right key")
        # A wrong key can occasionally yield valid padding; check the result never matches
        for _ in range(5):
            try:
                result = KeyCodec.sym_decrypt(KeyCodec.generate_symmetric_key(), encrypted)
            except DecryptionError:
                continue
            self.assertNotEqual(result, "message for the right key")

    def test_invalid_key_length(self):
        with self.assertRaises(KeyCodecError):
            SymmetricKey(b"short")

    def test_self_test_report(self):
        report = KeyCodec.self_test()
        self.assertEqual(set(report), {"rsaTest", "symTest", "rsaEmptyTest", "symEmptyTest"})
        self.assertTrue(all(entry["success"] for entry in report.values()))


if __name__ == "__main__":
    unittest.main()
