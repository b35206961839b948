import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from speakdrill.results.report import build_report, make_session_id, write_report
from speakdrill.results.schema import ReportRecord, ReportSummary
from speakdrill.session.models import Prompt, PromptRecord
from speakdrill.stats.stats import format_summary, records_frame, summarize

PROMPTS = [
    Prompt(1, "janvier", "january", "zhahn-vee-ay"),
    Prompt(2, "février", "february", "fay-vree-ay"),
    Prompt(3, "mars", "march", "mahrs"),
    Prompt(4, "avril", "april", "ah-vreel"),
]

RECORDS = [
    PromptRecord(1, "january", 0.9, "correct", 1.0, 0),
    PromptRecord(2, "febuary", 0.7, "partial", 0.875, 1),
    PromptRecord(3, "", 0.0, "skipped", None, 3),
    PromptRecord(4, "", 0.0, "micError", None, 0, error="network"),
]


class SummaryTests(unittest.TestCase):
    def test_counts_and_rates(self) -> None:
        s = summarize(RECORDS, total_prompts=4)
        self.assertEqual((s.correct, s.partial, s.incorrect, s.skipped, s.errors), (1, 1, 0, 1, 1))
        self.assertEqual(s.total_attempts, 4)
        self.assertEqual(s.total_retries, 4)
        # only records with confidence > 0 count
        self.assertAlmostEqual(s.avg_confidence, 0.8)
        self.assertAlmostEqual(s.accuracy_rate, 0.25)
        self.assertAlmostEqual(s.score_percentage, 25.0)

    def test_empty_log(self) -> None:
        s = summarize([], total_prompts=3)
        self.assertEqual(s.total_attempts, 0)
        self.assertEqual(s.avg_confidence, 0.0)
        self.assertEqual(s.accuracy_rate, 0.0)
        self.assertEqual(s.score_percentage, 0.0)

    def test_unknown_status_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            summarize(RECORDS + [PromptRecord(5, "mai", 0.5, "close", 0.6, 0)], total_prompts=5)

    def test_records_frame_columns(self) -> None:
        df = records_frame(RECORDS)
        self.assertEqual(list(df["status"]), ["correct", "partial", "skipped", "micError"])
        self.assertEqual(str(df["confidence"].dtype), "float64")

    def test_format_summary(self) -> None:
        text = format_summary(summarize(RECORDS, 4), RECORDS, PROMPTS)
        self.assertIn("Final Score: 1/4 (25.0%)", text)
        self.assertIn("Errors: 1", text)
        self.assertIn('[skipped] mars → march | You said: "No response" [3 retries]', text)
        self.assertIn("(90% confidence)", text)


class ReportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)
        self.report = build_report(
            RECORDS, summarize(RECORDS, 4), PROMPTS, title="French Months", platform="test", now=self.now
        )

    def test_session_id(self) -> None:
        sid = make_session_id("French Months!", self.now)
        self.assertTrue(sid.startswith("french-months-2024-03-05-"))
        self.assertTrue(sid.endswith(str(int(self.now.timestamp() * 1000))))

    def test_camel_case_wire_format(self) -> None:
        data = self.report.model_dump(by_alias=True)
        self.assertEqual(data["gameInfo"]["totalQuestions"], 4)
        first = data["results"][0]
        self.assertEqual(first["promptId"], 1)
        self.assertEqual(first["confidencePercent"], 90)
        self.assertTrue(first["speechDetected"])
        self.assertFalse(data["results"][2]["speechDetected"])
        self.assertEqual(data["results"][3]["error"], "network")
        self.assertEqual(data["summary"]["scorePercentage"], 25.0)
        self.assertEqual(data["summary"]["avgConfidencePercent"], 80.0)

    def test_write_report(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = write_report(self.report, Path(tmp) / "out")
            self.assertTrue(path.exists())
            self.assertEqual(path.name, f"{self.report.session_id}.json")
            data = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(data["sessionId"], self.report.session_id)
            self.assertEqual(len(data["results"]), 4)

    def test_naive_timestamp_becomes_utc(self) -> None:
        r = build_report(RECORDS, summarize(RECORDS, 4), PROMPTS, now=datetime(2024, 1, 1, 8, 0))
        self.assertEqual(r.timestamp.tzinfo, timezone.utc)

    def test_validators(self) -> None:
        with self.assertRaises(ValidationError):
            ReportRecord(
                prompt_id=1, question="q", expected="a", confidence=0.0, confidence_percent=0,
                speech_detected=False, status="micError", retries=0,
            )
        with self.assertRaises(ValidationError):
            ReportRecord(
                prompt_id=1, question="q", expected="a", transcript="hi", confidence=0.0,
                confidence_percent=0, speech_detected=False, status="skipped", retries=3,
            )
        with self.assertRaises(ValidationError):
            ReportSummary(
                total=2, total_attempts=2, correct=2, partial=1, incorrect=0, skipped=0, errors=0,
                total_retries=0, avg_confidence=0.5, avg_confidence_percent=50, accuracy_rate=1.0,
                accuracy_rate_percent=100, score_percentage=100,
            )


if __name__ == "__main__":
    unittest.main()
