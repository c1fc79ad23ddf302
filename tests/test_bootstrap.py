import asyncio
import unittest
from unittest.mock import patch

from chat_stream_client.app_config import RuntimeEnv, parse_app_config
from chat_stream_client.bootstrap import SESSION_COOKIE_NAME, bootstrap_runtime


class BootstrapRuntimeTests(unittest.TestCase):
    def test_wires_clients_from_config(self) -> None:
        app = parse_app_config({"ApiUrl": "http://api.test", "BackendUrl": "http://store.test/", "Model": "gpt-4o"})

        async def scenario():
            with patch("chat_stream_client.bootstrap.setup_logging", return_value=["console (stderr, WARNING)"]):
                runtime = await bootstrap_runtime(app, RuntimeEnv(session_cookie="token-1"))
            try:
                return (
                    str(runtime.api_http.base_url),
                    str(runtime.store_http.base_url),
                    runtime.store_http.cookies.get(SESSION_COOKIE_NAME),
                    runtime.api_http.cookies.get(SESSION_COOKIE_NAME),
                    runtime.client.model,
                    runtime.log_descriptions,
                )
            finally:
                await runtime.aclose()

        api_url, store_url, store_cookie, api_cookie, model, descriptions = asyncio.run(scenario())

        self.assertEqual("http://api.test", api_url.rstrip("/"))
        self.assertEqual("http://store.test", store_url.rstrip("/"))
        self.assertEqual("token-1", store_cookie)
        self.assertIsNone(api_cookie)
        self.assertEqual("gpt-4o", model)
        self.assertEqual(["console (stderr, WARNING)"], descriptions)


if __name__ == "__main__":
    unittest.main()
