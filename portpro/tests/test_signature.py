"""
Unit tests for webhook signature verification.
"""
import hashlib
import hmac

import pytest
from hypothesis import given, settings, strategies as st

from portpro.services.errors import SignatureInvalid
from portpro.services.signature import compute_signature, require_valid_signature, verify_signature

SECRET = 'test-webhook-secret'
BODY = '{"event":"load#status_updated","reference_number":"REF-123"}'


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_valid_signature_accepted(self):
        """Test a sha1 digest of the raw body with the shared secret is accepted."""
        digest = hmac.new(SECRET.encode(), BODY.encode(), hashlib.sha1).hexdigest()

        assert verify_signature(f'sha1={digest}', BODY, SECRET) is True

    def test_bytes_body_accepted(self):
        """Test the raw body may be passed as bytes."""
        header = compute_signature(BODY, SECRET)

        assert verify_signature(header, BODY.encode('utf-8'), SECRET) is True

    def test_missing_header_rejected(self):
        """Test a missing header is rejected."""
        assert verify_signature(None, BODY, SECRET) is False
        assert verify_signature('', BODY, SECRET) is False

    def test_missing_secret_rejected(self):
        """Test verification fails closed when no secret is configured."""
        header = compute_signature(BODY, SECRET)

        assert verify_signature(header, BODY, '') is False
        assert verify_signature(header, BODY, None) is False

    def test_wrong_algorithm_rejected(self):
        """Test a sha256 header is rejected even with a matching digest."""
        digest = hmac.new(SECRET.encode(), BODY.encode(), hashlib.sha256).hexdigest()

        assert verify_signature(f'sha256={digest}', BODY, SECRET) is False

    def test_header_without_separator_rejected(self):
        """Test a bare hex digest without 'sha1=' is rejected."""
        digest = hmac.new(SECRET.encode(), BODY.encode(), hashlib.sha1).hexdigest()

        assert verify_signature(digest, BODY, SECRET) is False

    def test_malformed_hex_rejected(self):
        """Test a non-hex digest is rejected instead of raising."""
        assert verify_signature('sha1=not-hex-at-all', BODY, SECRET) is False

    def test_truncated_digest_rejected(self):
        """Test a digest of the wrong length is rejected."""
        header = compute_signature(BODY, SECRET)

        assert verify_signature(header[:-2], BODY, SECRET) is False

    def test_tampered_body_rejected(self):
        """Test a signature for a different body is rejected."""
        header = compute_signature(BODY, SECRET)

        assert verify_signature(header, BODY.replace('REF-123', 'REF-124'), SECRET) is False

    def test_wrong_secret_rejected(self):
        """Test a signature made with another secret is rejected."""
        header = compute_signature(BODY, 'other-secret')

        assert verify_signature(header, BODY, SECRET) is False


class TestRequireValidSignature:
    """Tests for require_valid_signature."""

    def test_valid_signature_passes(self):
        """Test a valid header returns without raising."""
        require_valid_signature(compute_signature(BODY, SECRET), BODY, SECRET)

    def test_missing_header_raises(self):
        """Test a missing header raises SignatureInvalid naming the header."""
        with pytest.raises(SignatureInvalid, match='Missing X-Hub-Signature'):
            require_valid_signature(None, BODY, SECRET)

    def test_mismatch_raises(self):
        """Test a wrong digest raises SignatureInvalid."""
        with pytest.raises(SignatureInvalid) as excinfo:
            require_valid_signature(compute_signature(BODY, 'other-secret'), BODY, SECRET)

        assert excinfo.value.kind == 'signature_invalid'


class TestSignatureProperties:
    """Property-based tests for signature verification."""

    @settings(max_examples=100)
    @given(body=st.text(), secret=st.text(min_size=1))
    def test_computed_signature_always_verifies(self, body, secret):
        """
        Property: For any body and non-empty secret, the computed header
        verifies against the same body and secret.
        """
        assert verify_signature(compute_signature(body, secret), body, secret) is True

    @settings(max_examples=100)
    @given(body=st.text(min_size=1), suffix=st.text(min_size=1))
    def test_modified_body_never_verifies(self, body, suffix):
        """
        Property: Appending anything to the body invalidates the signature.
        """
        header = compute_signature(body, SECRET)

        assert verify_signature(header, body + suffix, SECRET) is False
