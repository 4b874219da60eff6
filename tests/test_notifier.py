from __future__ import annotations

import smtplib

from page_digest.config import Config
from page_digest.notifier import EmailNotifier, best_effort, render_email_html


class FakeSMTP:
    instances: list = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.tls = False
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        self.tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.messages.append(msg)


def test_unconfigured_email_is_a_failed_noop():
    result = EmailNotifier(Config()).send_email(to="a@example.com", subject="s", summary="body")

    assert result.success is False
    assert result.error == "Email not configured"


def test_send_email_over_smtp():
    FakeSMTP.instances = []
    config = Config(email_host="smtp.example.com", email_user="bot", email_password="pw", email_from="bot@example.com")

    result = EmailNotifier(config, smtp_factory=FakeSMTP).send_email(
        to="reader@example.com", subject="Daily", summary="Line <one>", title="Title"
    )

    assert result.success is True
    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.tls is True
    assert server.logged_in == ("bot", "pw")
    msg = server.messages[0]
    assert msg["To"] == "reader@example.com"
    assert msg["From"] == "bot@example.com"
    html_part = msg.get_body(preferencelist=("html",)).get_content()
    assert "Line &lt;one&gt;" in html_part


def test_smtp_error_is_reported_not_raised():
    def refusing(*_args, **_kwargs):
        raise smtplib.SMTPConnectError(421, "busy")

    config = Config(email_host="smtp.example.com", email_from="bot@example.com")

    result = EmailNotifier(config, smtp_factory=refusing).send_email(to="r@example.com", subject="s", summary="b")

    assert result.success is False
    assert "busy" in result.error


def test_render_email_html_defaults_title():
    assert "Workflow Summary" in render_email_html("text", None)


def test_best_effort_swallows_and_logs(caplog):
    def explode():
        raise RuntimeError("kaboom")

    assert best_effort("Side effect", explode) is None
    assert "Side effect failed" in caplog.text
    assert best_effort("Side effect", lambda x: x * 2, 21) == 42
