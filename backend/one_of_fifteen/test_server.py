from unittest import TestCase, mock

from . import server
from .config import Settings


class ServerEntryPointTests(TestCase):
    def _run(self, settings: Settings) -> mock.Mock:
        with mock.patch.object(server, "get_settings", return_value=settings), mock.patch.object(
            server, "setup_logging"
        ) as setup_logging, mock.patch.object(server.uvicorn, "run") as run:
            server.main()
        setup_logging.assert_called_once_with(settings.LOG_LEVEL)
        run.assert_called_once()
        return run

    def test_websocket_keepalive_defaults(self):
        run = self._run(Settings())
        kwargs = run.call_args.kwargs
        self.assertEqual(kwargs["ws_ping_interval"], 5.0)
        self.assertEqual(kwargs["ws_ping_timeout"], 10.0)
        self.assertIsNone(kwargs["log_config"])

    def test_keepalive_follows_settings(self):
        run = self._run(Settings(HOST="127.0.0.1", PORT=9000, WS_PING_INTERVAL_SECONDS=1.5, WS_PING_TIMEOUT_SECONDS=3))
        self.assertEqual(run.call_args.args, ("backend.one_of_fifteen.main:app",))
        kwargs = run.call_args.kwargs
        self.assertEqual((kwargs["host"], kwargs["port"]), ("127.0.0.1", 9000))
        self.assertEqual(kwargs["ws_ping_interval"], 1.5)
        self.assertEqual(kwargs["ws_ping_timeout"], 3)
