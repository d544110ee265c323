"""
HybridStore Test Suite
======================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → Tests for hybridstore.core (config, models, errors)
    ├── test_validation/    → Tests for hybridstore.validation
    ├── test_infrastructure/→ Tests for hybridstore.infrastructure (blob store,
    │                         index, cache, codec, pointer helpers)
    ├── test_integration/   → End-to-end tests through the ArtifactAPI
    ├── test_facade.py      → Tests for the ArtifactAPI facade
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_core/         # Run only core tests
    pytest tests/test_integration/  # Run only the end-to-end tests
"""
