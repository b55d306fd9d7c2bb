"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the market ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. pool_conservation.py - Pool accounting and token conservation
2. operation_atomicity.py - Failed operations change nothing
3. claim_properties.py - Exactly-once claims and streak rules
4. intent_identity.py - Content-addressable identity and idempotency
5. reconstruction.py - clone_at and replay rebuild state

These tests use hypothesis for property-based testing.
"""
