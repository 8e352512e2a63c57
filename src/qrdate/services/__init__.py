"""QR Date service layer.

- encoding: base64url helpers
- keys: key normalization, export and generation
- fingerprint: public key fingerprints for static URLs
- signing: signing message construction, sign and verify
- url_codec: dynamic and static URL encoding/decoding
- trust_store: fingerprint-indexed trusted keys
- qrdate: QRDateService, the create/verify facade
"""
