# Tests del guard de SQL - denylist, acotado de filas y chequeo estructural
# Ejecutar con: pytest tests/test_sql_guard.py -v

import pytest

from core.domain.errors import UnsafeQueryError
from core.security.sql_guard import QueryGuard, is_safe_sql


@pytest.fixture
def guard():
    return QueryGuard(row_limit=100)


@pytest.mark.unit
class TestSanitize:
    """Tests de la lista de denegación"""

    def test_accepts_select(self, guard):
        assert guard.sanitize("SELECT * FROM users") == "SELECT * FROM users"

    def test_accepts_cte(self, guard):
        sql = "WITH t AS (SELECT id FROM users) SELECT id FROM t"
        assert guard.sanitize(sql) == sql

    def test_strips_trailing_semicolon_and_comments(self, guard):
        assert guard.sanitize("SELECT id FROM users; -- fin") == "SELECT id FROM users"

    @pytest.mark.parametrize(
        "sql,pattern",
        [
            ("DROP TABLE users", "DROP"),
            ("drop table users", "DROP"),
            ("DELETE FROM users", "DELETE"),
            ("UPDATE users SET name = 'x'", "UPDATE"),
            ("INSERT INTO users VALUES (1)", "INSERT"),
            ("TRUNCATE users", "TRUNCATE"),
            ("SELECT pg_sleep(10)", "pg_sleep"),
            ("SELECT * FROM users INTO OUTFILE '/tmp/x'", "INTO OUTFILE"),
            ("SELECT LOAD_FILE('/etc/passwd')", "LOAD_FILE"),
            ("EXEC xp_cmdshell 'dir'", "EXECUTE"),
            ("ATTACH DATABASE 'x.db' AS x", "ATTACH"),
        ],
    )
    def test_rejects_dangerous(self, guard, sql, pattern):
        with pytest.raises(UnsafeQueryError) as exc:
            guard.sanitize(sql)
        assert exc.value.pattern == pattern
        assert exc.value.code == "UNSAFE_QUERY"

    def test_comments_do_not_hide_keywords(self, guard):
        """DR/**/OP no debe pasar"""
        with pytest.raises(UnsafeQueryError):
            guard.sanitize("SELECT 1; DR/**/OP TABLE users")

    def test_rejects_keyword_inside_literal(self, guard):
        """Falso positivo aceptado: los literales no se excluyen"""
        with pytest.raises(UnsafeQueryError):
            guard.sanitize("SELECT * FROM logs WHERE action = 'DELETE'")

    def test_identifiers_containing_keywords_are_allowed(self, guard):
        sql = "SELECT updated_at, created_by FROM audit"
        assert guard.sanitize(sql) == sql

    def test_comment_markers_inside_literals_are_kept(self, guard):
        sql = "SELECT name FROM customers WHERE name <> 'a--b' ORDER BY name"
        assert guard.sanitize(sql) == sql
        assert guard.validate_syntax(sql).valid

        block = "SELECT '/* nota */' AS c FROM t -- fin"
        assert guard.sanitize(block) == "SELECT '/* nota */' AS c FROM t"

    def test_escaped_quotes_inside_literals(self, guard):
        sql = "SELECT * FROM t WHERE note = 'it''s -- ok'"
        assert guard.sanitize(sql) == sql

    def test_rejects_non_select(self, guard):
        with pytest.raises(UnsafeQueryError) as exc:
            guard.sanitize("SHOW TABLES")
        assert exc.value.pattern == "NON_SELECT"

    def test_rejects_multiple_statements(self, guard):
        with pytest.raises(UnsafeQueryError) as exc:
            guard.sanitize("SELECT 1; SELECT 2")
        assert exc.value.pattern == "MULTIPLE_STATEMENTS"

    def test_rejects_empty(self, guard):
        with pytest.raises(UnsafeQueryError):
            guard.sanitize("   ")

    def test_is_safe_sql_helper(self):
        assert is_safe_sql("SELECT 1")
        assert not is_safe_sql("DELETE FROM users")


@pytest.mark.unit
class TestApplySafeguards:
    """Tests del acotado automático de filas"""

    def test_adds_limit(self, guard):
        assert guard.apply_safeguards("SELECT * FROM users") == "SELECT * FROM users LIMIT 100"

    def test_is_idempotent(self, guard):
        once = guard.apply_safeguards("SELECT * FROM users")
        assert guard.apply_safeguards(once) == once

    def test_keeps_smaller_limit(self, guard):
        assert guard.apply_safeguards("SELECT * FROM users LIMIT 10") == "SELECT * FROM users LIMIT 10"

    def test_caps_larger_limit(self, guard):
        assert guard.apply_safeguards("SELECT * FROM users LIMIT 5000") == "SELECT * FROM users LIMIT 100"

    def test_caps_mysql_offset_count_form(self, guard):
        result = guard.apply_safeguards("SELECT a FROM t LIMIT 10, 50000")
        assert result == "SELECT a FROM t LIMIT 10, 100"

    def test_keeps_small_mysql_offset_count_form(self, guard):
        assert guard.apply_safeguards("SELECT a FROM t LIMIT 500, 20") == "SELECT a FROM t LIMIT 500, 20"

    def test_limit_all_is_bounded(self, guard):
        assert guard.apply_safeguards("SELECT a FROM t LIMIT ALL") == "SELECT a FROM t LIMIT 100"

    def test_limit_with_offset(self, guard):
        result = guard.apply_safeguards("SELECT a FROM t LIMIT 5000 OFFSET 20")
        assert result == "SELECT a FROM t LIMIT 100 OFFSET 20"

    def test_explicit_row_limit(self, guard):
        assert guard.apply_safeguards("SELECT 1", row_limit=5) == "SELECT 1 LIMIT 5"

    def test_top_style(self, guard):
        assert guard.apply_safeguards("SELECT name FROM users", style="top") == "SELECT TOP 100 name FROM users"

    def test_top_style_distinct(self, guard):
        result = guard.apply_safeguards("SELECT DISTINCT city FROM users", style="top")
        assert result == "SELECT DISTINCT TOP 100 city FROM users"

    def test_top_style_caps_existing_top(self, guard):
        result = guard.apply_safeguards("SELECT TOP 500 name FROM users", style="top")
        assert result == "SELECT TOP 100 name FROM users"

    def test_top_style_cte_bounds_outer_select(self, guard):
        sql = "WITH x AS (SELECT id FROM users) SELECT id FROM x"
        result = guard.apply_safeguards(sql, style="top")
        assert result == "WITH x AS (SELECT id FROM users) SELECT TOP 100 id FROM x"


@pytest.mark.unit
class TestValidateSyntax:
    """Tests del chequeo estructural mínimo"""

    def test_valid_select(self, guard):
        assert guard.validate_syntax("SELECT id FROM users").valid

    def test_scalar_select(self, guard):
        assert guard.validate_syntax("SELECT 1").valid

    def test_unbalanced_parentheses(self, guard):
        result = guard.validate_syntax("SELECT COUNT(id FROM users")
        assert not result.valid
        assert "Paréntesis" in result.error

    def test_missing_columns(self, guard):
        assert not guard.validate_syntax("SELECT FROM users").valid

    def test_unclosed_quote(self, guard):
        assert not guard.validate_syntax("SELECT * FROM users WHERE name = 'Ana").valid
