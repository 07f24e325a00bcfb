import unittest

import tenline


def track(text, debug_guard="DEBUG"):
    scan = tenline.scan_source(text)
    tracker = tenline.PreprocessorTracker(scan.source, debug_guard=debug_guard)
    for token in scan.directives:
        tracker.feed(token)
    tracker.finish()
    return tracker


class PreprocessorTrackerTests(unittest.TestCase):
    def test_object_and_function_like_macros(self) -> None:
        tracker = track("#define LIMIT 10\n#define MAX(a, b) ((a) > (b) ? (a) : (b))\n#define F (x)\n")
        limit, max_macro, spaced = tracker.macros
        self.assertEqual((limit.name, limit.kind, limit.replacement), ("LIMIT", "object_like", "10"))
        self.assertEqual(max_macro.kind, "function_like")
        self.assertEqual(max_macro.params, ["a", "b"])
        self.assertEqual(spaced.kind, "object_like")
        self.assertEqual(spaced.replacement, "(x)")

    def test_macro_location_points_at_name(self) -> None:
        tracker = track("\n#  define   pi 3.14\n")
        self.assertEqual(tracker.macros[0].location, tenline.SourceLocation(2, 13))

    def test_includes(self) -> None:
        tracker = track('#include <stdio.h>\n#include "lib.h"\n')
        self.assertEqual(
            [(inc.target, inc.is_quoted) for inc in tracker.includes],
            [("stdio.h", False), ("lib.h", True)],
        )

    def test_debug_region_becomes_excluded_span(self) -> None:
        tracker = track("int a;\n#ifdef DEBUG\n#define trace 1\n#endif\n")
        self.assertEqual(tracker.excluded_spans, [tenline.ExcludedSpan(2, 4)])
        self.assertTrue(tracker.excluded_spans[0].contains(3))
        self.assertFalse(tracker.excluded_spans[0].contains(5))
        self.assertTrue(tracker.macros[0].in_excluded_span)

    def test_other_conditionals_do_not_exclude(self) -> None:
        tracker = track("#ifdef RELEASE\n#endif\n#if DEBUG\n#endif\n#ifndef DEBUG\n#endif\n")
        self.assertEqual(tracker.excluded_spans, [])

    def test_nested_debug_region_reports_outer_span_only(self) -> None:
        tracker = track("#ifdef DEBUG\n#if X\n#ifdef DEBUG\n#endif\n#endif\n#endif\n")
        self.assertEqual(tracker.excluded_spans, [tenline.ExcludedSpan(1, 6)])

    def test_custom_debug_guard(self) -> None:
        tracker = track("#ifdef TRACE\n#endif\n#ifdef DEBUG\n#endif\n", debug_guard="TRACE")
        self.assertEqual(tracker.excluded_spans, [tenline.ExcludedSpan(1, 2)])

    def test_unmatched_endif(self) -> None:
        with self.assertRaises(tenline.StructuralParseError) as ctx:
            track("int a;\n#endif\n")
        self.assertEqual(ctx.exception.line, 2)

    def test_unclosed_conditional(self) -> None:
        with self.assertRaises(tenline.StructuralParseError) as ctx:
            track("#ifdef DEBUG\nint a;\n")
        self.assertEqual(ctx.exception.line, 1)


if __name__ == "__main__":
    unittest.main()
