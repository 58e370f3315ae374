import io
import json
import tempfile
import unittest
from pathlib import Path

from tcorpus.core.config import CorpusConfig, load_corpus_config, read_yaml_file
from tcorpus.core.errors import ConfigError, LessonNotFoundError, ParseError, PartialOrderError
from tcorpus.core.report_log import ReportRecord, ReportWriter
from tcorpus.core.validation import InputValidator, ValidationFailure


class ConfigParsingTests(unittest.TestCase):
    def _write_yaml(self, data: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", delete=False, suffix=".yaml")
        tmp.write(data)
        tmp.flush()
        tmp.close()
        self.addCleanup(lambda: Path(tmp.name).unlink(missing_ok=True))
        return Path(tmp.name)

    def test_load_corpus_config_resolves_relative_root(self) -> None:
        path = self._write_yaml(
            """
            root: lessons
            subject_language: Kotlin
            toc_files: [" README.md "]
            markers:
              solution: ["answer"]
            """
        )
        config = load_corpus_config(path)
        self.assertIsInstance(config, CorpusConfig)
        self.assertEqual(config.root, (path.parent / "lessons").resolve())
        self.assertEqual(config.subject_language, "kotlin")
        self.assertEqual(config.toc_files, ["README.md"])
        self.assertEqual(config.markers.solution, ["answer"])
        self.assertEqual(config.markers.todo, ["TODO"])

    def test_missing_root_defaults_to_config_directory(self) -> None:
        path = self._write_yaml("strict: true\n")
        config = load_corpus_config(path)
        self.assertEqual(config.root, path.parent.resolve())
        self.assertTrue(config.strict)

    def test_unknown_keys_are_rejected(self) -> None:
        path = self._write_yaml("root: .\nlanguage: kotlin\n")
        with self.assertRaises(ConfigError):
            load_corpus_config(path)

    def test_invalid_values_raise_config_error(self) -> None:
        path = self._write_yaml("max_workers: 0\n")
        with self.assertRaises(ConfigError) as ctx:
            load_corpus_config(path)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_non_mapping_yaml_is_rejected(self) -> None:
        path = self._write_yaml("- just\n- a list\n")
        with self.assertRaises(ConfigError):
            read_yaml_file(path)

    def test_canonical_language(self) -> None:
        config = CorpusConfig()
        self.assertEqual(config.canonical_language("KT"), "kotlin")
        self.assertEqual(config.canonical_language("Java"), "java")
        self.assertEqual(config.canonical_language(""), "unknown")
        self.assertEqual(config.canonical_language(None), "unknown")

    def test_with_root_returns_copy(self) -> None:
        config = CorpusConfig(strict=True)
        moved = config.with_root(Path("/tmp/lessons"))
        self.assertEqual(moved.root, Path("/tmp/lessons"))
        self.assertTrue(moved.strict)
        self.assertEqual(config.root, Path("."))


class ErrorTests(unittest.TestCase):
    def test_parse_error_message(self) -> None:
        err = ParseError(Path("basics/broken.md"), "missing title heading")
        self.assertEqual(str(err), "basics/broken.md: missing title heading")
        self.assertEqual(err.path, "basics/broken.md")

    def test_lesson_not_found_is_a_key_error(self) -> None:
        err = LessonNotFoundError("nope")
        self.assertIsInstance(err, KeyError)
        self.assertEqual(str(err), "Unknown lesson id: nope")

    def test_partial_order_error_keeps_prefix(self) -> None:
        err = PartialOrderError(("a",), ("b", "c"))
        self.assertEqual(err.partial, ["a"])
        self.assertEqual(err.remainder, ["b", "c"])
        self.assertIn("b, c", str(err))


class ReportWriterTests(unittest.TestCase):
    def test_writes_jsonl_records_to_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "reports" / "validation.jsonl"
            writer = ReportWriter(output)
            written = writer.extend(
                [
                    {"kind": "orphan", "severity": "warning", "lesson_id": "x", "message": "x is unreachable"},
                    ReportRecord(kind="cycle", severity="error", message="prerequisite cycle: a -> b -> a"),
                ]
            )
            self.assertEqual(written, 2)
            lines = output.read_text(encoding="utf-8").strip().splitlines()
            self.assertEqual(len(lines), 2)
            first = json.loads(lines[0])
            self.assertEqual(first["kind"], "orphan")
            self.assertEqual(first["lesson_id"], "x")
            self.assertIn("timestamp", first)

    def test_overwrite_truncates_previous_run(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "validation.jsonl"
            record = {"kind": "orphan", "severity": "warning", "message": "x is unreachable"}
            ReportWriter(output).extend([record, record])
            ReportWriter(output, overwrite=True).log(record)
            self.assertEqual(len(output.read_text(encoding="utf-8").splitlines()), 1)

    def test_writes_to_stream(self) -> None:
        buffer = io.StringIO()
        record = ReportWriter(stream=buffer).log(
            {"kind": "broken-link", "severity": "error", "message": "missing", "details": {"reference": "a.md"}}
        )
        self.assertIsInstance(record, ReportRecord)
        payload = json.loads(buffer.getvalue())
        self.assertEqual(payload["details"], {"reference": "a.md"})

    def test_requires_a_destination(self) -> None:
        with self.assertRaises(ValueError):
            ReportWriter()


class InputValidatorTests(unittest.TestCase):
    def test_strict_validator_raises_for_missing_file(self) -> None:
        with self.assertRaises(ValidationFailure):
            InputValidator(strict=True).validate_file_exists(Path("/nonexistent/corpus.yaml"))

    def test_lenient_validator_reports_errors(self) -> None:
        result = InputValidator(strict=False).validate_directory(Path("/nonexistent/lessons"))
        self.assertFalse(result.valid)
        self.assertIn("does not exist", result.errors[0])

    def test_file_is_not_a_corpus_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "corpus.yaml"
            path.write_text("root: .\n", encoding="utf-8")
            self.assertTrue(InputValidator().validate_file_exists(path).valid)
            result = InputValidator(strict=False).validate_directory(path)
            self.assertEqual(result.errors, [f"Path is not a directory: {path}"])


if __name__ == "__main__":
    unittest.main()
