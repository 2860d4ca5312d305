"""
Credential Encryption Unit Tests
"""

import pytest

from integrations.base import HRCredentials
from integrations.credentials import CredentialCipher
from integrations.exceptions import ConfigurationError


class TestCredentialCipher:

    def test_encrypted_blob_hides_secrets(self):
        cipher = CredentialCipher(CredentialCipher.generate_key())
        blob = cipher.encrypt(HRCredentials(api_key="top-secret", subdomain="acme"))

        assert b"top-secret" not in blob
        restored = cipher.decrypt(blob)
        assert restored.api_key == "top-secret"
        assert restored.subdomain == "acme"

    def test_vendor_extras_survive(self):
        cipher = CredentialCipher(CredentialCipher.generate_key())
        creds = HRCredentials.model_validate({"clientId": "c", "clientSecret": "s", "dataCenter": "eu"})

        restored = cipher.decrypt(cipher.encrypt(creds))

        assert restored.client_id == "c"
        assert restored.model_extra["dataCenter"] == "eu"

    def test_wrong_key_raises_configuration_error(self):
        blob = CredentialCipher(CredentialCipher.generate_key()).encrypt(HRCredentials(api_key="k"))
        other = CredentialCipher(CredentialCipher.generate_key())

        with pytest.raises(ConfigurationError):
            other.decrypt(blob)
