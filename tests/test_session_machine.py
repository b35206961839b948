import unittest
from types import SimpleNamespace

from speakdrill.app.events import EventBus
from speakdrill.recognition.arbiter import AttemptInFlight, RecognitionArbiter
from speakdrill.recognition.outcomes import ProviderEnd, ProviderError, ProviderNoSpeech, ProviderResult, Result
from speakdrill.recognition.provider import RecognitionUnavailable
from speakdrill.session.machine import InvalidTransition, SessionState, SessionStateMachine
from speakdrill.session.models import Prompt
from speakdrill.util.timers import ManualClock, TimerQueue

from .fakes import FakeProvider

PROMPTS = [
    Prompt(1, "janvier", "january", "zhahn-vee-ay"),
    Prompt(2, "février", "february", "fay-vree-ay"),
    Prompt(3, "mars", "march", "mahrs"),
]


class SessionStateMachineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = FakeProvider()
        self.timers = TimerQueue(ManualClock())
        self.arbiter = RecognitionArbiter(self.provider, self.timers)
        self.bus = EventBus()
        self.events = []
        for topic in ("prompt", "progress", "feedback", "record", "retry", "complete", "restart"):
            self.bus.subscribe(topic, lambda payload, t=topic: self.events.append((t, payload)))
        self.sm = SessionStateMachine(PROMPTS, self.arbiter, max_retries=3, bus=self.bus)

    def topics(self, name: str):
        return [p for t, p in self.events if t == name]

    def say(self, text: str, confidence: float = 0.9) -> None:
        self.sm.begin_attempt()
        self.provider.emit(ProviderResult(text, confidence), ProviderEnd())

    def silence(self) -> None:
        self.sm.begin_attempt()
        self.provider.emit(ProviderNoSpeech(), ProviderEnd())

    def test_all_correct_scores_full_marks(self) -> None:
        self.sm.start()
        for p in PROMPTS:
            self.say(p.expected_answer.upper())
            self.assertEqual(self.sm.state, SessionState.EVALUATING)
            self.sm.advance()
        self.assertEqual(self.sm.state, SessionState.COMPLETE)
        summary = self.sm.summary
        self.assertEqual(summary.correct, 3)
        self.assertEqual(summary.score_percentage, 100.0)
        self.assertEqual([r.prompt_id for r in self.sm.log], [1, 2, 3])
        self.assertEqual(self.topics("complete"), [summary])
        self.assertEqual(self.sm.progress().fraction, 1.0)

    def test_transcript_is_normalized_and_graded(self) -> None:
        self.sm.start()
        self.say("  Jenuary ", 0.65)
        rec = self.sm.log[0]
        self.assertEqual(rec.transcript, "jenuary")
        self.assertEqual(rec.status, "partial")
        self.assertAlmostEqual(rec.similarity, 6 / 7, places=3)
        self.assertEqual(rec.confidence, 0.65)
        self.assertEqual(rec.retries, 0)
        self.assertEqual(self.topics("feedback")[-1].category, "warning")

    def test_retry_exhaustion_yields_single_skipped_record(self) -> None:
        self.sm.start()
        self.silence()
        self.silence()
        self.assertEqual(self.sm.state, SessionState.AWAITING_ATTEMPT)
        self.assertEqual(self.sm.log, ())
        self.silence()
        self.assertEqual(self.sm.state, SessionState.EVALUATING)
        self.assertEqual(len(self.sm.log), 1)
        rec = self.sm.log[0]
        self.assertEqual(rec.status, "skipped")
        self.assertEqual(rec.retries, 3)
        self.assertEqual(rec.transcript, "")
        self.assertEqual(rec.confidence, 0.0)
        self.assertIsNone(rec.similarity)
        self.assertEqual(self.topics("retry"), [1, 2])

    def test_aborted_counts_as_silence(self) -> None:
        self.sm.start()
        self.sm.begin_attempt()
        self.provider.emit(ProviderError("aborted"))
        self.assertEqual(self.sm.retries, 1)
        self.say("january")
        self.assertEqual(self.sm.log[0].retries, 1)
        self.assertEqual(self.sm.log[0].status, "correct")

    def test_provider_error_records_mic_error(self) -> None:
        self.sm.start()
        self.sm.begin_attempt()
        self.provider.emit(ProviderError("network"))
        rec = self.sm.log[0]
        self.assertEqual(rec.status, "micError")
        self.assertEqual(rec.error, "network")
        self.assertIsNone(rec.similarity)
        self.assertEqual(self.sm.retries, 0)
        self.assertEqual(self.topics("feedback")[-1].category, "error")
        self.sm.advance()
        self.assertEqual(self.sm.index, 1)

    def test_permission_denied_blocks_without_record(self) -> None:
        for code in ("not-allowed", "service-not-allowed"):
            with self.subTest(code=code):
                self.events.clear()
                self.sm.start()
                self.sm.begin_attempt()
                self.provider.emit(ProviderError(code))
                self.assertEqual(self.sm.log, ())
                self.assertEqual(self.sm.state, SessionState.PRESENTING)
                self.assertEqual(self.sm.index, 0)
                self.assertEqual(self.sm.access_denied, code)
                errors = [f for f in self.topics("feedback") if f.category == "error"]
                self.assertEqual(len(errors), 1)
                self.assertIn(code, errors[0].text)

                started = len(self.provider.started)
                with self.assertRaises(RecognitionUnavailable):
                    self.sm.begin_attempt()
                self.assertEqual(len(self.provider.started), started)
                self.assertEqual(self.sm.state, SessionState.PRESENTING)
                self.assertEqual(len([f for f in self.topics("feedback") if f.category == "error"]), 1)

    def test_start_clears_denied_access(self) -> None:
        self.sm.start()
        self.sm.begin_attempt()
        self.provider.emit(ProviderError("not-allowed"))
        self.sm.start()
        self.assertIsNone(self.sm.access_denied)
        self.say("january")
        self.assertEqual(self.sm.log[0].status, "correct")

    def test_unexpected_start_failure_restores_presenting(self) -> None:
        self.sm.start()
        self.provider.start_error = OSError("device busy")
        with self.assertRaises(OSError):
            self.sm.begin_attempt()
        self.assertEqual(self.sm.state, SessionState.PRESENTING)
        self.assertFalse(self.sm.attempt_active)
        self.provider.start_error = None
        self.say("january")
        self.assertEqual(self.sm.state, SessionState.EVALUATING)

    def test_invalid_transitions(self) -> None:
        with self.assertRaises(InvalidTransition):
            self.sm.begin_attempt()
        self.sm.start()
        with self.assertRaises(InvalidTransition):
            self.sm.advance()
        self.say("january")
        with self.assertRaises(InvalidTransition):
            self.sm.begin_attempt()

    def test_begin_attempt_while_listening(self) -> None:
        self.sm.start()
        self.sm.begin_attempt()
        self.assertTrue(self.sm.attempt_active)
        with self.assertRaises(AttemptInFlight):
            self.sm.begin_attempt()

    def test_unavailable_recognizer_writes_nothing(self) -> None:
        self.provider.is_available = False
        self.sm.start()
        with self.assertRaises(RecognitionUnavailable):
            self.sm.begin_attempt()
        self.assertEqual(self.sm.state, SessionState.PRESENTING)
        self.assertEqual(self.sm.log, ())
        self.assertEqual(self.topics("feedback")[-1].category, "error")

    def test_restart_is_idempotent_and_tears_down(self) -> None:
        self.sm.start()
        self.say("january")
        self.sm.advance()
        attempt = self.sm.begin_attempt()
        self.sm.restart()
        self.sm.restart()
        self.assertEqual(self.sm.state, SessionState.IDLE)
        self.assertEqual(self.sm.log, ())
        self.assertEqual(self.provider.aborted, [attempt])
        # a late answer for the torn-down attempt changes nothing
        attempt.deliver(ProviderResult("february", 1.0))
        self.assertEqual(self.sm.log, ())
        self.assertEqual(self.sm.state, SessionState.IDLE)
        self.assertEqual(len(self.topics("restart")), 2)

    def test_stale_outcome_after_restart_is_dropped(self) -> None:
        self.sm.start()
        captured = []

        def fake_start(on_resolved):
            captured.append(on_resolved)
            return SimpleNamespace(id=0, terminal=False)

        self.arbiter.start = fake_start
        self.sm.begin_attempt()
        self.sm.start()
        self.sm.state = SessionState.AWAITING_ATTEMPT
        captured[0](Result("january", 1.0))
        self.assertEqual(self.sm.log, ())
        self.assertEqual(self.topics("record"), [])

    def test_progress_and_prompt_events(self) -> None:
        self.sm.start()
        view = self.topics("prompt")[0]
        self.assertEqual((view.index, view.total, view.prompt.source_text), (0, 3, "janvier"))
        self.assertAlmostEqual(self.topics("progress")[-1].fraction, 1 / 3)
        self.say("january")
        self.assertEqual(self.topics("progress")[-1].score_text, "Score: 1/3")
        self.assertEqual(self.topics("record")[0].status, "correct")

    def test_one_record_per_prompt(self) -> None:
        self.sm.start()
        self.say("jan")
        self.sm.advance()
        self.silence()
        self.silence()
        self.silence()
        self.sm.advance()
        self.sm.begin_attempt()
        self.provider.emit(ProviderError("network"))
        self.sm.advance()
        self.assertEqual([r.status for r in self.sm.log], ["incorrect", "skipped", "micError"])
        for rec in self.sm.log:
            self.assertLessEqual(rec.retries, 3)
        self.assertEqual(self.sm.summary.total_attempts, 3)

    def test_restart_from_complete_twice(self) -> None:
        self.sm.start()
        for p in PROMPTS:
            self.say(p.expected_answer)
            self.sm.advance()
        self.assertEqual(self.sm.state, SessionState.COMPLETE)
        for _ in range(2):
            self.sm.restart()
            self.assertEqual(self.sm.state, SessionState.IDLE)
            self.assertEqual(self.sm.log, ())
            self.assertIsNone(self.sm.summary)
            self.assertEqual(self.sm.progress().fraction, 0.0)

    def test_constructor_validation(self) -> None:
        with self.assertRaises(ValueError):
            SessionStateMachine([], self.arbiter)
        with self.assertRaises(ValueError):
            SessionStateMachine(PROMPTS, self.arbiter, max_retries=0)


if __name__ == "__main__":
    unittest.main()
