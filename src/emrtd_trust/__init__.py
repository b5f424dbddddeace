"""
emrtd_trust — eMRTD passport authentication against an ICAO trust list.

Parses LDIF-wrapped CSCA master lists into a deduplicated trust list,
decodes passport Security Object Documents, walks the DG1 → LDS →
signed attributes → document signer → CSCA chain of trust, and indexes
the trust list in a Merkle registry for compact membership witnesses.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
