"""
Tests for the SecurityService identity lifecycle.
"""
import unittest
from unittest.mock import patch

from inter_webhook.models.config import Config
from inter_webhook.security import bundle_decoder
from inter_webhook.security.errors import CertificateParseError, ConfigurationError
from inter_webhook.security.identity import MTLSTransport
from inter_webhook.security.security_service import SecurityService
from inter_webhook.services.logging_service import LoggingService

from pki_helpers import PKIFixture, P12_PASSWORD


class TestSecurityService(unittest.TestCase):
    """Test cases for SecurityService."""

    @classmethod
    def setUpClass(cls):
        cls.pki = PKIFixture()

    def setUp(self):
        self.config = Config(p12_base64=self.pki.p12_base64, p12_password=P12_PASSWORD)

    def test_initialize_without_credentials(self):
        """Missing P12 settings are reported but do not raise."""
        service = SecurityService(Config(p12_password=P12_PASSWORD))

        self.assertFalse(service.initialize())
        self.assertFalse(service.is_identity_loaded())
        self.assertIn("P12_BASE64", service.last_error)
        self.assertIsNone(service.get_certificate_info())

    def test_get_transport_without_credentials_raises(self):
        service = SecurityService(Config())

        with self.assertRaises(ConfigurationError):
            service.get_transport()

    def test_initialize_builds_identity(self):
        service = SecurityService(self.config)
        self.addCleanup(service.close)

        self.assertTrue(service.initialize())
        self.assertTrue(service.is_identity_loaded())
        self.assertIsNone(service.last_error)
        self.assertIn("CN=inter-client", service.get_certificate_info().subject)

    def test_initialize_with_wrong_password(self):
        service = SecurityService(Config(p12_base64=self.pki.p12_base64, p12_password="wrong"))

        self.assertFalse(service.initialize())
        self.assertFalse(service.is_identity_loaded())
        self.assertIsNotNone(service.last_error)
        self.assertNotIn("wrong", service.last_error)

    def test_transport_is_built_once_and_shared(self):
        service = SecurityService(self.config)
        self.addCleanup(service.close)

        with patch('inter_webhook.security.security_service.decode_bundle',
                   wraps=bundle_decoder.decode_bundle) as mock_decode:
            first = service.get_transport()
            second = service.get_transport()

        self.assertIsInstance(first, MTLSTransport)
        self.assertIs(first, second)
        mock_decode.assert_called_once()

    def test_rebuild_identity_swaps_transport(self):
        service = SecurityService(self.config)
        self.addCleanup(service.close)

        first = service.get_transport()
        rebuilt = service.rebuild_identity()

        self.assertIsNot(first, rebuilt)
        self.assertIs(service.get_transport(), rebuilt)

    def test_rebuild_identity_closes_previous_transport(self):
        service = SecurityService(self.config)
        self.addCleanup(service.close)
        first = service.get_transport()

        with patch.object(first, 'close', wraps=first.close) as mock_close:
            service.rebuild_identity()

        mock_close.assert_called_once()

    def test_failed_rebuild_keeps_previous_transport(self):
        service = SecurityService(self.config)
        self.addCleanup(service.close)
        first = service.get_transport()

        with patch('inter_webhook.security.security_service.decode_bundle',
                   side_effect=CertificateParseError("corrupt")):
            with self.assertRaises(CertificateParseError):
                service.rebuild_identity()

        self.assertIs(service.get_transport(), first)

    def test_lazy_build_after_failed_startup_raises_parse_error(self):
        service = SecurityService(Config(p12_base64="bm90LWEtcDEy", p12_password=P12_PASSWORD))

        self.assertFalse(service.initialize())
        with self.assertRaises(CertificateParseError):
            service.get_transport()

    def test_timeout_comes_from_config(self):
        config = Config(p12_base64=self.pki.p12_base64, p12_password=P12_PASSWORD,
                        request_timeout_seconds=4)
        service = SecurityService(config)
        self.addCleanup(service.close)

        self.assertEqual(service.get_transport().timeout, 4)

    def test_steps_are_measured(self):
        logging_service = LoggingService(self.config, configure_root=False)
        service = SecurityService(self.config, logging_service)
        self.addCleanup(service.close)

        service.initialize()

        stats = logging_service.get_performance_stats()
        self.assertIn('decode_bundle', stats)
        self.assertIn('build_identity', stats)

    def test_close_releases_transport(self):
        service = SecurityService(self.config)
        service.initialize()

        service.close()

        self.assertFalse(service.is_identity_loaded())


if __name__ == '__main__':
    unittest.main()
