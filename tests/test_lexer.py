"""
Tests for the sectioned .env lexer.

Tests the round-trip constraint: write(tokenize(file)) == file (byte-identical)
"""

import logging

import pytest
from gistenv.core.crypto import encrypt_value, decrypt_value, is_encrypted
from gistenv.core.lexer import (
    Token,
    TokenType,
    Variable,
    tokenize,
    write,
    diagnostics,
    parse_variables,
    encrypt_content,
    decrypt_content,
    get_sections,
    get_keys,
    filter_by_section,
    filter_by_keys,
    to_mapping,
    group_by_section,
)


KEY = "test_encryption_key_16chars"

SECTIONED = """# [Production]
API_KEY=prod_key
DB_URL=prod.db.com

# [Staging]
API_KEY=staging_key
DB_URL=staging.db.com"""


class TestLexerRoundTrip:
    """Test that tokenizing and writing produces byte-identical output."""

    def test_empty_file(self):
        assert write(tokenize("")) == ""

    def test_sectioned_file(self):
        assert write(tokenize(SECTIONED)) == SECTIONED

    def test_trailing_newline(self):
        content = "KEY=value\n"
        assert write(tokenize(content)) == content

    def test_crlf_and_odd_lines(self):
        """CRLF endings and unparseable lines are kept."""
        content = "# [A]\r\nKEY=value\r\njunk line\r\n\r\n   \n"
        assert write(tokenize(content)) == content


class TestTokenization:
    """Test line classification."""

    def test_blank_line(self):
        tokens = tokenize("   \n")
        assert tokens[0].type == TokenType.BLANK_LINE

    def test_comment(self):
        tokens = tokenize("# Just a comment\n")
        assert tokens[0].type == TokenType.COMMENT

    def test_section_header(self):
        tokens = tokenize("# [MyApp Production]\n")
        assert tokens[0].type == TokenType.SECTION_HEADER
        assert tokens[0].section == "MyApp Production"

    def test_section_header_loose_spacing(self):
        tokens = tokenize("#[Prod]  \n")
        assert tokens[0].type == TokenType.SECTION_HEADER
        assert tokens[0].section == "Prod"

    def test_bracketed_comment_with_trailing_text_is_comment(self):
        tokens = tokenize("# [Prod] settings\n")
        assert tokens[0].type == TokenType.COMMENT

    def test_key_value(self):
        tokens = tokenize("DATABASE_URL=postgres://localhost/db\n")
        assert tokens[0].type == TokenType.KEY_VALUE
        assert tokens[0].key == "DATABASE_URL"
        assert tokens[0].value == "postgres://localhost/db"

    def test_first_equals_splits(self):
        tokens = tokenize("TOKEN=abc==\n")
        assert tokens[0].key == "TOKEN"
        assert tokens[0].value == "abc=="

    def test_line_without_equals_is_invalid(self):
        tokens = tokenize("not an assignment\n")
        assert tokens[0].type == TokenType.INVALID

    def test_empty_key_is_invalid(self):
        tokens = tokenize("=value\n")
        assert tokens[0].type == TokenType.INVALID

    def test_repr(self):
        assert "KEY=value" in repr(Token(TokenType.KEY_VALUE, raw="KEY=value", key="KEY", value="value"))


class TestDiagnostics:
    """Test the skipped-line side channel."""

    def test_reports_invalid_lines(self):
        content = "KEY=value\nstray text\n# comment\nanother\n"
        assert diagnostics(tokenize(content)) == [(2, "stray text"), (4, "another")]

    def test_clean_file(self):
        assert diagnostics(tokenize(SECTIONED)) == []


class TestParseVariables:
    """Test variable extraction with sections."""

    def test_simple_content(self):
        result = parse_variables("API_KEY=test_key\nDB_URL=localhost:5432\n")
        assert result == [
            Variable(key="API_KEY", value="test_key"),
            Variable(key="DB_URL", value="localhost:5432"),
        ]

    def test_sections(self):
        result = parse_variables(SECTIONED)
        assert len(result) == 4
        assert [v.section for v in result] == ["Production", "Production", "Staging", "Staging"]
        assert result[2] == Variable(key="API_KEY", value="staging_key", section="Staging")

    def test_variables_before_first_header(self):
        result = parse_variables("GLOBAL=1\n# [Prod]\nKEY=2\n")
        assert result[0].section is None
        assert result[1].section == "Prod"

    def test_empty_header_starts_unnamed_section(self):
        result = parse_variables("# [A]\nX=1\n# []\nY=2\n")
        assert [v.section for v in result] == ["A", ""]

    def test_ordinary_comment_keeps_section(self):
        result = parse_variables("# [Prod]\n# database\nDB=1\n")
        assert result[0].section == "Prod"

    def test_skips_malformed_lines(self):
        result = parse_variables("garbage\nKEY=value\n=nokey\n")
        assert result == [Variable(key="KEY", value="value")]

    def test_trims_keys_and_values(self):
        result = parse_variables("  API_KEY  =  test_value  \n  DB_URL = localhost  ")
        assert result[0] == Variable(key="API_KEY", value="test_value")
        assert result[1] == Variable(key="DB_URL", value="localhost")

    def test_duplicate_keys_in_section_are_kept(self):
        result = parse_variables("# [A]\nKEY=1\nKEY=2\n")
        assert [v.value for v in result] == ["1", "2"]

    def test_decrypts_with_key(self):
        token = encrypt_value("secret_password", KEY)
        result = parse_variables(f"API_KEY={token}", decrypt=True, encryption_key=KEY)
        assert result[0].value == "secret_password"

    def test_no_decrypt_by_default(self):
        token = encrypt_value("secret_password", KEY)
        result = parse_variables(f"API_KEY={token}", encryption_key=KEY)
        assert result[0].value == token

    def test_short_key_does_not_decrypt(self):
        token = encrypt_value("secret", KEY)
        result = parse_variables(f"API_KEY={token}", decrypt=True, encryption_key="short")
        assert result[0].value == token

    def test_keeps_token_when_decryption_fails(self, caplog):
        """A wrong key logs a warning and keeps the encrypted value."""
        token = encrypt_value("secret", KEY)
        content = f"API_KEY={token}\nPLAIN=value\n"

        with caplog.at_level(logging.WARNING, logger="gistenv.core.lexer"):
            result = parse_variables(content, decrypt=True, encryption_key="wrong_test_key_16chars")

        assert result[0].value == token
        assert result[1].value == "value"
        assert "API_KEY" in caplog.text


class TestEncryptContent:
    """Test in-place value encryption."""

    def test_encrypts_values_not_keys(self):
        encrypted = encrypt_content("SECRET_KEY=secret_value", KEY)
        assert encrypted.startswith("SECRET_KEY=ENC:")
        assert "secret_value" not in encrypted

    def test_preserves_structure(self):
        content = "# [Production]\nAPI_KEY=secret_key\n\n# Comment\n  DB_URL = localhost  \nstray\n"
        encrypted = encrypt_content(content, KEY)
        lines = encrypted.split("\n")

        assert lines[0] == "# [Production]"
        assert lines[1].startswith("API_KEY=ENC:")
        assert lines[2] == ""
        assert lines[3] == "# Comment"
        assert lines[4].startswith("  DB_URL = ENC:")
        assert lines[4].endswith("  ")
        assert lines[5] == "stray"
        assert encrypted.endswith("\n")

    def test_values_decrypt_back(self):
        encrypted = encrypt_content(SECTIONED, KEY)
        result = parse_variables(encrypted, decrypt=True, encryption_key=KEY)
        assert result == parse_variables(SECTIONED)

    def test_no_key_is_identity(self):
        content = "API_KEY=test_key\nDB_URL=localhost"
        assert encrypt_content(content, None) == content
        assert encrypt_content(content, "short") == content

    @pytest.mark.parametrize("content", [
        "",
        "# Just a comment\n# Another comment",
        "# [Production]\n# [Staging]",
    ])
    def test_nothing_to_encrypt(self, content):
        assert encrypt_content(content, KEY) == content

    def test_already_encrypted_values_untouched(self):
        once = encrypt_content("KEY=value\n", KEY)
        assert encrypt_content(once, KEY) == once

    def test_empty_value_untouched(self):
        assert encrypt_content("EMPTY=\n", KEY) == "EMPTY=\n"


class TestDecryptContent:
    """Test in-place value decryption."""

    def test_restores_document(self):
        content = "# [Prod]\nKEY=value\n# note\nOTHER=a=b\n"
        assert decrypt_content(encrypt_content(content, KEY), KEY) == content

    def test_plain_values_untouched(self):
        content = "KEY=value\n"
        assert decrypt_content(content, KEY) == content


class TestQueries:
    """Test projections over parsed variables."""

    @pytest.fixture
    def variables(self):
        return parse_variables(SECTIONED + "\n# [Test]\nDEBUG=true\n")

    def test_get_sections(self, variables):
        assert get_sections(variables) == ["Production", "Staging", "Test"]

    def test_get_sections_skips_unsectioned(self):
        assert get_sections(parse_variables("A=1\n# [S]\nB=2")) == ["S"]

    def test_get_keys(self, variables):
        assert get_keys(variables) == ["API_KEY", "DB_URL", "DEBUG"]

    def test_filter_by_section(self, variables):
        result = filter_by_section(variables, "Staging")
        assert [v.value for v in result] == ["staging_key", "staging.db.com"]

    def test_filter_by_unknown_section(self, variables):
        assert filter_by_section(variables, "Missing") == []

    def test_filter_by_keys(self, variables):
        result = filter_by_keys(variables, ["API_KEY", "DEBUG"])
        assert [(v.key, v.section) for v in result] == [
            ("API_KEY", "Production"),
            ("API_KEY", "Staging"),
            ("DEBUG", "Test"),
        ]

    def test_to_mapping_last_wins(self, variables):
        assert to_mapping(variables)["API_KEY"] == "staging_key"

    def test_group_by_section(self):
        variables = parse_variables("A=1\n# [S]\nB=2\nC=3\n# [T]\nD=4\n# [S]\nE=5\n")
        groups = group_by_section(variables)
        assert [(section, [v.key for v in group]) for section, group in groups] == [
            (None, ["A"]),
            ("S", ["B", "C"]),
            ("T", ["D"]),
            ("S", ["E"]),
        ]

    def test_queries_do_not_mutate(self, variables):
        before = list(variables)
        get_sections(variables)
        filter_by_section(variables, "Staging")
        filter_by_keys(variables, ["DEBUG"])
        assert variables == before
