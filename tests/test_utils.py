"""
Unit tests for logging configuration and scoped working directories.
"""

import io
import unittest
import logging
import tempfile
import sys
from pathlib import Path

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from affine_registration.core.exceptions import ErrorCode, ResourceProvisioningError
from affine_registration.utils.logging_config import (
    RegistrationLogger,
    new_session_id,
    setup_logging,
)
from affine_registration.utils.workdir import scoped_working_directory


class TestScopedWorkingDirectory(unittest.TestCase):
    """Tests for scoped_working_directory."""

    def test_created_and_removed(self):
        with tempfile.TemporaryDirectory() as root:
            with scoped_working_directory(root, prefix="test_") as workdir:
                self.assertTrue(workdir.is_dir())
                self.assertEqual(workdir.parent, Path(root))
                self.assertTrue(workdir.name.startswith("test_"))
                (workdir / "TransformParameters.0.txt").write_text("(Transform \"x\")")
            self.assertFalse(workdir.exists())

    def test_removed_on_error(self):
        with self.assertRaises(RuntimeError):
            with scoped_working_directory() as workdir:
                raise RuntimeError("elastix crashed")
        self.assertFalse(workdir.exists())

    def test_unique_per_call(self):
        with scoped_working_directory() as first, scoped_working_directory() as second:
            self.assertNotEqual(first, second)

    def test_provisioning_failure(self):
        with tempfile.TemporaryDirectory() as root:
            missing = Path(root) / "does" / "not" / "exist"
            with self.assertRaises(ResourceProvisioningError) as ctx:
                with scoped_working_directory(missing):
                    pass
        self.assertEqual(ctx.exception.code, ErrorCode.RESOURCE_PROVISIONING)
        self.assertEqual(ctx.exception.location, str(missing))


class TestLogging(unittest.TestCase):
    """Tests for logging setup and session logging."""

    def tearDown(self):
        logger = logging.getLogger("affine_registration")
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_setup_logging_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "logs" / "registration.log"
            logger = setup_logging(level="DEBUG", log_file=log_file, stream=None)
            logger.debug("hello from the test")
            for handler in logger.handlers:
                handler.flush()
                handler.close()
            logger.handlers.clear()

            content = log_file.read_text()
        self.assertIn("hello from the test", content)
        self.assertEqual(logger.level, logging.DEBUG)

    def test_setup_logging_stream_replaces_handlers(self):
        stream = io.StringIO()
        setup_logging(level="INFO", stream=io.StringIO())
        logger = setup_logging(level="INFO", stream=stream)
        self.assertEqual(len(logger.handlers), 1)
        self.assertFalse(logger.propagate)

        logging.getLogger("affine_registration.registration").info("routed to the stream")
        logging.getLogger("affine_registration.registration").debug("below the level")
        self.assertIn("routed to the stream", stream.getvalue())
        self.assertNotIn("below the level", stream.getvalue())

    def test_session_id(self):
        session_id = new_session_id("direct")
        self.assertTrue(session_id.startswith("direct-"))
        self.assertNotEqual(session_id, new_session_id("direct"))

    def test_registration_logger(self):
        logger = logging.getLogger("affine_registration.test")
        session = RegistrationLogger("reg-1234", logger)
        with self.assertLogs(logger, level="DEBUG") as captured:
            session.start_registration(transform_class="affine")
            session.log_iteration(iteration=1, metric=-0.5, step=4.0)
            session.end_registration(success=True, iterations=1)

        output = "\n".join(captured.output)
        self.assertIn("reg-1234", output)
        self.assertIn("transform_class=affine", output)
        self.assertIn("duration_sec", output)


if __name__ == "__main__":
    unittest.main()
