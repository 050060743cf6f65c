"""Tests for prompt recognition and echo handling."""
import pytest

from rtx_client.session.prompt import (
    PromptDetector,
    PromptKind,
    normalize,
    strip_echo,
)


@pytest.fixture
def detector():
    return PromptDetector()


class TestPromptMatch:
    """Tests for PromptDetector.match."""

    @pytest.mark.parametrize("buffer,kind", [
        ("[RTX1210] > ", PromptKind.NORMAL),
        ("[RTX1210] # ", PromptKind.PRIVILEGED),
        ("[RTX830]> ", PromptKind.NORMAL),
        ("RTX830# ", PromptKind.PRIVILEGED),
        ("rtx-01.lab> ", PromptKind.NORMAL),
        ("[branch office] # ", PromptKind.PRIVILEGED),
        ("> ", PromptKind.NORMAL),
        ("# ", PromptKind.PRIVILEGED),
    ])
    def test_hostname_variants(self, detector, buffer, kind):
        """Prompts are recognized with or without a configured hostname."""
        match = detector.match(buffer)
        assert match is not None
        assert match.kind is kind

    def test_prompt_after_output(self, detector):
        """Match offsets point at the prompt on the last line."""
        buffer = "LAN1: up\n[RTX1210] # "
        match = detector.match(buffer)
        assert match.kind is PromptKind.PRIVILEGED
        assert match.start == len("LAN1: up\n")
        assert match.end == len(buffer)
        assert buffer[match.start:] == "[RTX1210] # "

    def test_prompt_not_on_last_line(self, detector):
        """A prompt followed by more output is not a prompt."""
        assert detector.match("[RTX1210] > \nstill printing") is None

    def test_empty_last_line(self, detector):
        assert detector.match("output\n") is None
        assert detector.match("") is None

    def test_output_ending_in_angle_bracket(self, detector):
        """Output text with spaces before '>' is not a prompt."""
        assert detector.match("ip filter list follows >") is None

    @pytest.mark.parametrize("buffer", [
        "line 1\n---More---",
        "line 1\n--- More ---",
        "line 1\n --- つづく --- ",
        "line 1\nPress any key to continue",
    ])
    def test_pagination(self, detector, buffer):
        assert detector.match(buffer).kind is PromptKind.PAGINATION

    def test_login_and_password(self, detector):
        assert detector.match("\nLogin: ").kind is PromptKind.LOGIN
        assert detector.match("admin\nPassword: ").kind is PromptKind.PASSWORD

    def test_admin_password_needs_administrator_echo(self, detector):
        """Password prompt after 'administrator' is the admin password prompt."""
        match = detector.match("administrator\nPassword: ", echo="administrator")
        assert match.kind is PromptKind.ADMIN_PASSWORD

        match = detector.match("administrator\nPassword: ")
        assert match.kind is PromptKind.ADMIN_PASSWORD

        match = detector.match("Password: ")
        assert match.kind is PromptKind.PASSWORD

    def test_save_confirm(self, detector):
        match = detector.match("exit\nSave new configuration ? (Y/N)", echo="exit")
        assert match.kind is PromptKind.SAVE_CONFIRM


class TestEchoSuppression:
    """The echoed command line is never treated as a prompt."""

    def test_echo_alone_is_not_a_prompt(self, detector):
        """Echo containing prompt characters does not end the read."""
        echo = "console prompt RTX>"
        assert detector.match("console prompt RTX>\n", echo=echo) is None
        assert detector.match("console prompt RTX>", echo=echo) is None

    def test_echo_containing_hash(self, detector):
        echo = "description lan1 #"
        assert detector.match("description lan1 #", echo=echo) is None
        match = detector.match("description lan1 #\n[RTX1210] # ", echo=echo)
        assert match.kind is PromptKind.PRIVILEGED
        assert match.start == len("description lan1 #\n")

    def test_partial_echo_behind_prompt(self, detector):
        """Echo may arrive in pieces behind a reprinted prompt."""
        assert detector.match("[RTX1210] > show st", echo="show status lan1") is None

    def test_no_echo_falls_back_to_buffer(self, detector):
        """A router that does not echo still yields a match."""
        match = detector.match("LAN1: up\n[RTX1210] > ", echo="show status lan1")
        assert match.kind is PromptKind.NORMAL


class TestStripEcho:
    """Tests for strip_echo."""

    def test_removes_echo_line(self):
        assert strip_echo("show log\nline 1\n", "show log") == "line 1\n"

    def test_echo_still_arriving(self):
        assert strip_echo("show lo", "show log") is None
        assert strip_echo("show log", "show log") is None
        assert strip_echo("", "show log") is None

    def test_no_echo(self):
        assert strip_echo("line 1\n", "show log") == "line 1\n"

    def test_echo_behind_reprinted_prompt(self):
        assert strip_echo("[RTX1210] > show log\nline 1\n", "show log") == "line 1\n"

    def test_leading_blank_lines(self):
        assert strip_echo("\nshow log\nline 1\n", "show log") == "line 1\n"

    def test_command_text_quoted_in_output(self):
        """Without an echo, output mentioning the command is kept whole."""
        buffer = "line 1\nuser ran show log\nline 3\n"
        assert strip_echo(buffer, "show log") == buffer

    def test_blank_echo(self):
        assert strip_echo("[RTX1210] > ", "") == "[RTX1210] > "


class TestBanners:
    """Tests for PromptDetector.find_banner."""

    def test_login_failed(self, detector):
        assert detector.find_banner("\nLogin incorrect\nLogin: ") is PromptKind.LOGIN_FAILED

    def test_command_errors_are_not_banners(self, detector):
        assert detector.find_banner("Error: Invalid command name") is None

    def test_clean_output(self, detector):
        assert detector.find_banner("LAN1: up") is None


class TestNormalize:
    """Tests for terminal output normalization."""

    def test_crlf(self):
        assert normalize("a\r\nb\r\n") == "a\nb\n"

    def test_carriage_return_overwrite(self):
        assert normalize("---More---\r          \rline 3\r\n") == "line 3\n"

    def test_plain_text_untouched(self):
        assert normalize("a\nb") == "a\nb"
