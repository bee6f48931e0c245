"""Common setup for tests."""

from tests.mock_utils import patch_mockfirestore

# mockfirestore must understand FieldFilter and transaction= before any test runs
patch_mockfirestore()
