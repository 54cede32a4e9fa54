# -*- coding: utf-8 -*-
"""
Tests for query_dsl.py - filter expression parsing and term resolution.
"""

import unittest
from datetime import datetime

import query_dsl
from query_dsl import (
    compile_filter,
    parse_number,
    parse_size,
    parse_timestamp,
    resolve,
    resolve_address,
)
from query_printer import render
from query_terms import (
    FLAGGED,
    SEEN,
    And,
    Body,
    Comparison,
    EmailAddress,
    Flag,
    From,
    InvalidExpression,
    InvalidValue,
    MessageNumber,
    Not,
    Or,
    PersonalName,
    ReceivedDate,
    Recipient,
    RecipientType,
    SentDate,
    Size,
    Subject,
    UnknownField,
)


class TestCompileExamples(unittest.TestCase):
    """Canonical descriptions of the documented examples"""

    def test_and_or_example(self):
        tree = compile_filter("subject:hello+from:test@gmail.com|size_le:4kb")
        self.assertEqual(
            render(tree),
            '((subject contains "hello" and sender is "test@gmail.com") '
            'or size less than "4096" bytes)',
        )

    def test_flag_example(self):
        tree = compile_filter("flag:starred|flag:!seen")
        self.assertEqual(render(tree), '(flag "starred" set or flag "Seen" not set)')

    def test_negated_subject_is_wrapped(self):
        tree = compile_filter("subject:!Work")
        self.assertEqual(tree, Not(Subject("Work")))
        self.assertEqual(render(tree), 'not subject contains "Work"')

    def test_render_is_stable(self):
        expression = "body:x+to:Jane Doe|cc:!a@b.com+size_ge:1mb"
        self.assertEqual(render(compile_filter(expression)), render(compile_filter(expression)))
        self.assertEqual(compile_filter(expression), compile_filter(expression))


class TestCompileAlias(unittest.TestCase):
    def test_compile_is_compile_filter(self):
        self.assertIs(query_dsl.compile, query_dsl.compile_filter)
        self.assertEqual(query_dsl.compile("subject:a"), Subject("a"))


class TestGrammar(unittest.TestCase):
    """Tests for precedence, folding and structural errors"""

    def test_and_binds_tighter_than_or(self):
        tree = compile_filter("subject:a+body:b|number:3")
        self.assertEqual(
            tree, Or(And(Subject("a"), Body("b")), MessageNumber(3))
        )

    def test_or_then_and(self):
        tree = compile_filter("number:3|subject:a+body:b")
        self.assertEqual(
            tree, Or(MessageNumber(3), And(Subject("a"), Body("b")))
        )

    def test_and_folds_left(self):
        tree = compile_filter("subject:a+subject:b+subject:c")
        self.assertEqual(
            tree, And(And(Subject("a"), Subject("b")), Subject("c"))
        )
        self.assertEqual(
            render(tree),
            '((subject contains "a" and subject contains "b") and subject contains "c")',
        )

    def test_or_folds_left(self):
        tree = compile_filter("number:1|number:2|number:3")
        self.assertEqual(
            tree, Or(Or(MessageNumber(1), MessageNumber(2)), MessageNumber(3))
        )

    def test_single_term_has_no_combinator(self):
        self.assertEqual(compile_filter("body:report"), Body("report"))

    def test_value_kept_verbatim(self):
        self.assertEqual(compile_filter("subject: Hello World "), Subject(" Hello World "))

    def test_missing_colon(self):
        with self.assertRaises(InvalidExpression):
            compile_filter("subject-hello")

    def test_too_many_colons(self):
        with self.assertRaises(InvalidExpression):
            compile_filter("subject:re:hello")

    def test_empty_expression(self):
        with self.assertRaises(InvalidExpression):
            compile_filter("")

    def test_empty_or_branch(self):
        for expression in ("subject:a||subject:b", "|subject:a", "subject:a|"):
            with self.subTest(expression=expression):
                with self.assertRaises(InvalidExpression):
                    compile_filter(expression)

    def test_empty_and_branch(self):
        for expression in ("subject:a++subject:b", "+subject:a", "subject:a+"):
            with self.subTest(expression=expression):
                with self.assertRaises(InvalidExpression):
                    compile_filter(expression)

    def test_empty_field_or_value(self):
        for expression in (":hello", "subject:"):
            with self.subTest(expression=expression):
                with self.assertRaises(InvalidExpression):
                    compile_filter(expression)

    def test_unknown_field(self):
        with self.assertRaises(UnknownField) as ctx:
            compile_filter("bogus:x")
        self.assertEqual(ctx.exception.fragment, "bogus")

    def test_invalid_number_fails_fast(self):
        with self.assertRaises(InvalidValue):
            compile_filter("number:abc")
        with self.assertRaises(InvalidValue):
            compile_filter("subject:a+number:!abc")

    def test_error_carries_fragment(self):
        with self.assertRaises(InvalidExpression) as ctx:
            compile_filter("subject:a+subject-b")
        self.assertEqual(ctx.exception.fragment, "subject-b")
        self.assertIn("subject-b", str(ctx.exception))


class TestResolve(unittest.TestCase):
    """Tests for the field dispatch table"""

    def test_body_and_subject(self):
        self.assertEqual(resolve("body", "x"), Body("x"))
        self.assertEqual(resolve("subject", "x"), Subject("x"))

    def test_number(self):
        self.assertEqual(resolve("number", "42"), MessageNumber(42))

    def test_negation_wraps(self):
        self.assertEqual(resolve("number", "7", negate=True), Not(MessageNumber(7)))

    def test_from_address(self):
        self.assertEqual(
            resolve("from", "john@x.com"), From(EmailAddress("john@x.com"))
        )

    def test_from_personal_name(self):
        self.assertEqual(resolve("from", "John Smith"), From(PersonalName("John Smith")))

    def test_from_personal_name_is_trimmed(self):
        self.assertEqual(resolve("from", "  John Smith "), From(PersonalName("John Smith")))

    def test_from_display_name_and_address(self):
        leaf = resolve("from", "John <john@x.com>")
        self.assertEqual(leaf, From(EmailAddress("john@x.com", "John")))

    def test_commas_stripped_before_address_parse(self):
        self.assertEqual(resolve("from", "john@x.com,"), From(EmailAddress("john@x.com")))

    def test_recipient_types(self):
        self.assertEqual(
            resolve("to", "a@b.com"), Recipient(RecipientType.TO, EmailAddress("a@b.com"))
        )
        self.assertEqual(
            resolve("cc", "Jane"), Recipient(RecipientType.CC, PersonalName("Jane"))
        )
        self.assertEqual(
            resolve("bcc", "c@d.org"), Recipient(RecipientType.BCC, EmailAddress("c@d.org"))
        )

    def test_empty_address_value(self):
        with self.assertRaises(InvalidValue):
            resolve("from", "  ")

    def test_dates(self):
        when = datetime(2024, 1, 15, 10, 30, 0).astimezone()
        self.assertEqual(
            resolve("received", "2024-01-15T10.30.00"), ReceivedDate(Comparison.EQ, when)
        )
        self.assertEqual(
            resolve("received_after", "2024-01-15T10.30.00"),
            ReceivedDate(Comparison.GE, when),
        )
        self.assertEqual(
            resolve("received_before", "2024-01-15T10.30.00"),
            ReceivedDate(Comparison.LE, when),
        )
        self.assertEqual(resolve("sent", "2024-01-15T10.30.00"), SentDate(Comparison.EQ, when))
        self.assertEqual(
            resolve("sent_after", "2024-01-15T10.30.00"), SentDate(Comparison.GE, when)
        )
        self.assertEqual(
            resolve("sent_before", "2024-01-15T10.30.00"), SentDate(Comparison.LE, when)
        )

    def test_sizes(self):
        self.assertEqual(resolve("size_ge", "100kb"), Size(Comparison.GE, 102400))
        self.assertEqual(resolve("size_le", "2.5mb"), Size(Comparison.LE, 2621440))

    def test_builtin_flags(self):
        self.assertEqual(resolve("flag", "seen"), Flag(SEEN, True))
        self.assertEqual(resolve("flag", "flagged"), Flag(FLAGGED, True))

    def test_builtin_flags_are_case_sensitive(self):
        self.assertEqual(resolve("flag", "Seen"), Flag("Seen", True))

    def test_custom_flag(self):
        self.assertEqual(resolve("flag", "starred"), Flag("starred", True))
        self.assertEqual(resolve("flag", "$Label1"), Flag("$Label1", True))

    def test_flag_name_must_be_an_atom(self):
        for value in ("my flag", "a(b", 'a"b', "a\\b", "a]b", "50%", "ä"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidValue):
                    resolve("flag", value)
        with self.assertRaises(InvalidValue):
            compile_filter("flag:my flag")

    def test_negated_flag_flips_state(self):
        leaf = resolve("flag", "seen", negate=True)
        self.assertEqual(leaf, Flag(SEEN, False))
        self.assertNotIsInstance(leaf, Not)

    def test_unknown_field(self):
        with self.assertRaises(UnknownField):
            resolve("priority", "high")


class TestResolveAddress(unittest.TestCase):
    """The address fallback never raises"""

    def test_invalid_inputs_fall_back(self):
        for value in ("John Smith", "john@", "@x.com", "john@@x.com", "<>"):
            with self.subTest(value=value):
                self.assertIsInstance(resolve_address(value), PersonalName)

    def test_valid_address(self):
        self.assertEqual(resolve_address("a.b+c@mail.example.org"), EmailAddress("a.b+c@mail.example.org"))


class TestParseSize(unittest.TestCase):
    """Tests for "<number>kb|mb" parsing"""

    def test_kilobytes(self):
        self.assertEqual(parse_size("4kb"), 4096)
        self.assertEqual(parse_size("100kb"), 102400)

    def test_megabytes_rounded(self):
        self.assertEqual(parse_size("2.5mb"), 2621440)
        self.assertEqual(parse_size("0.001kb"), 1)

    def test_unit_is_case_insensitive(self):
        self.assertEqual(parse_size("1MB"), 1048576)
        self.assertEqual(parse_size("1Kb"), 1024)

    def test_invalid(self):
        invalid = (
            "kb", "4k", "4gb", "abckb", "-1kb", "1e3kb", "kbkb", "1.2.3mb", "9" * 400 + "kb",
        )
        for value in invalid:
            with self.subTest(value=value):
                with self.assertRaises(InvalidValue):
                    parse_size(value)

    def test_too_large(self):
        with self.assertRaises(InvalidValue) as ctx:
            parse_size("9" * 400 + "mb")
        self.assertIn("File size too large", str(ctx.exception))


class TestParseTimestamp(unittest.TestCase):
    """Tests for YYYY-MM-DDTHH.MM.SS parsing"""

    def test_local_time(self):
        when = parse_timestamp("2024-03-05T08.15.30")
        self.assertEqual(when, datetime(2024, 3, 5, 8, 15, 30).astimezone())
        self.assertIsNotNone(when.tzinfo)

    def test_invalid(self):
        for value in (
            "2024-03-05",
            "2024-03-05T08:15:30",
            "2024-3-5T8.15.30",
            "2024-13-05T08.15.30",
            "2024-03-05 08.15.30",
            "yesterday",
        ):
            with self.subTest(value=value):
                with self.assertRaises(InvalidValue):
                    parse_timestamp(value)


class TestParseNumber(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(parse_number("12"), 12)
        self.assertEqual(parse_number("+3"), 3)

    def test_invalid(self):
        for value in ("", "1.5", "abc", "1_000", " 1"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidValue):
                    parse_number(value)


if __name__ == "__main__":
    unittest.main(verbosity=2)
