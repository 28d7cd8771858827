import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from app.core.env_validation import ProductionSettings, missing_variable_names, validate_environment


class TestEnvironmentValidation(unittest.TestCase):
    def test_reports_every_missing_variable(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValidationError) as ctx:
                ProductionSettings(_env_file=None)

        missing = missing_variable_names(ctx.exception)
        for name in ("DATABASE_URL", "FIREBASE_PROJECT_ID", "JWT_SECRET", "STORAGE_PROVIDER", "ALLOWED_ORIGINS"):
            self.assertIn(name, missing)

    def test_missing_configuration_exits(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(SystemExit) as ctx:
                validate_environment()
        self.assertEqual(ctx.exception.code, 1)

    def test_valid_environment(self):
        settings = validate_environment()
        self.assertEqual(settings.storage_provider, "gcs")
        self.assertEqual(settings.jwt_issuer, "roam-admin")

    def test_wildcard_origin_rejected_in_production(self):
        with patch.dict(os.environ, {"ALLOWED_ORIGINS": "*", "DEBUG": "false"}):
            with self.assertRaises(SystemExit):
                validate_environment()

    def test_s3_needs_credentials(self):
        with patch.dict(os.environ, {"STORAGE_PROVIDER": "s3", "S3_BUCKET_NAME": "docs"}):
            os.environ.pop("AWS_ACCESS_KEY_ID", None)
            with self.assertRaises(SystemExit):
                validate_environment()

    def test_short_link_secret_rejected_in_production(self):
        with patch.dict(os.environ, {"JWT_SECRET": "too-short", "DEBUG": "false"}):
            with self.assertRaises(SystemExit):
                validate_environment()


if __name__ == "__main__":
    unittest.main()
