# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import unittest
from unittest.mock import MagicMock

import requests

from models.tracing import TraceMetadata, Tracer


class TracerTest(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.session.post.return_value.ok = True
        self.session.patch.return_value.ok = True
        self.tracer = Tracer(api_key="ls-key", project_name="tests", session=self.session)

    def test_disabled_tracer_only_runs_the_call(self):
        session = MagicMock()
        with self.assertLogs("models.tracing", level="WARNING"):
            tracer = Tracer(api_key=None, session=session)

        result, trace_id = tracer.trace_ai_call("x", TraceMetadata(model="m"), lambda: 42)

        self.assertEqual(result, 42)
        self.assertTrue(trace_id)
        session.post.assert_not_called()
        self.assertIsNone(tracer.log_fallback("a", "b", "down", TraceMetadata(model="m")))

    def test_ai_call_creates_and_closes_run(self):
        metadata = TraceMetadata(model="deepseek-reasoner", user_id="u1", query_type="complex")

        result, trace_id = self.tracer.trace_ai_call("optimize", metadata, lambda: "answer")

        self.assertEqual(result, "answer")
        created = self.session.post.call_args.kwargs["json"]
        self.assertEqual(created["id"], trace_id)
        self.assertEqual(created["run_type"], "llm")
        self.assertEqual(created["project_name"], "tests")
        self.assertEqual(created["extra"]["tags"], ["deepseek-reasoner", "complex"])
        self.assertEqual(self.session.post.call_args.kwargs["headers"]["x-api-key"], "ls-key")

        url = self.session.patch.call_args.args[0]
        self.assertTrue(url.endswith(f"/runs/{trace_id}"))
        outputs = self.session.patch.call_args.kwargs["json"]["outputs"]
        self.assertTrue(outputs["success"])

    def test_failed_call_is_recorded_and_raised(self):
        def boom():
            raise RuntimeError("model down")

        with self.assertRaises(RuntimeError):
            self.tracer.trace_routing("simple", "gemini-flash", TraceMetadata(model="m"), boom)

        update = self.session.patch.call_args.kwargs["json"]
        self.assertEqual(update["error"], "model down")
        self.assertFalse(update["outputs"]["success"])

    def test_tracing_errors_are_not_raised(self):
        self.session.post.side_effect = requests.ConnectionError("no network")
        with self.assertLogs("models.tracing", level="ERROR"):
            result, _ = self.tracer.trace_routing(
                "simple", "gemini-flash", TraceMetadata(model="m"), lambda: "ok"
            )
        self.assertEqual(result, "ok")

    def test_log_fallback(self):
        trace_id = self.tracer.log_fallback(
            "claude-sonnet", "gemini-flash", "timeout", TraceMetadata(model="m")
        )
        run = self.session.post.call_args.kwargs["json"]
        self.assertEqual(run["id"], trace_id)
        self.assertEqual(run["name"], "fallback_claude-sonnet_to_gemini-flash")
        self.assertIn(trace_id, self.tracer.dashboard_url(trace_id))


if __name__ == "__main__":
    unittest.main()
