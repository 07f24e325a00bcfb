import unittest

import tenline


def build(text, **config_overrides):
    config = tenline.Config(**config_overrides)
    return tenline.build_translation_unit("sample.c", text, config)


class GlobalDeclarationTests(unittest.TestCase):
    def test_initialized_and_plain_globals(self) -> None:
        unit = build("int counter;\nstatic const int LIMIT = 5;\nchar buffer[256], *cursor = 0;\n")
        self.assertEqual(len(unit.global_declarations), 3)
        self.assertEqual([v.name for v in unit.globals], ["counter", "LIMIT", "buffer", "cursor"])
        self.assertEqual(unit.global_declarations[2].location, tenline.SourceLocation(3, 1))
        self.assertTrue(unit.globals[3].has_initializer)
        self.assertFalse(unit.globals[2].has_initializer)
        self.assertEqual(unit.globals[3].declaration, "char buffer[256], *cursor = 0")

    def test_extern_and_function_pointer_globals(self) -> None:
        unit = build("extern int shared;\nint (*handler)(int code);\n")
        self.assertEqual([v.name for v in unit.globals], ["shared", "handler"])

    def test_type_only_declarations_are_not_globals(self) -> None:
        unit = build(
            "struct point { int x; int y; };\n"
            "typedef struct { int a; } pair_t;\n"
            "enum color { RED, GREEN };\n"
            "typedef unsigned long size_type;\n"
        )
        self.assertEqual(unit.global_declarations, [])

    def test_struct_variable_is_a_global(self) -> None:
        unit = build("struct point { int x; } origin = { 0 };\nstruct point *current;\n")
        self.assertEqual([v.name for v in unit.globals], ["origin", "current"])

    def test_prototypes_are_not_globals(self) -> None:
        unit = build("int helper(int a, char *b);\nvoid noop(void);\n")
        self.assertEqual(unit.global_declarations, [])
        self.assertEqual([f.name for f in unit.functions], ["helper", "noop"])
        self.assertFalse(any(f.is_definition for f in unit.functions))
        self.assertEqual([p.name for p in unit.functions[0].parameters], ["a", "b"])
        self.assertEqual(unit.functions[1].parameters, [])

    def test_excluded_file_scope_declarations_are_skipped(self) -> None:
        unit = build("#ifdef DEBUG\nint debug_hits;\n#endif\n")
        self.assertEqual(unit.global_declarations, [])

    def test_extern_c_guard_keeps_declarations_at_file_scope(self) -> None:
        unit = build(
            "#ifdef __cplusplus\n"
            "extern \"C\" {\n"
            "#endif\n"
            "extern int counter;\n"
            "int get_count(void);\n"
            "// bump\n"
            "void bump(int step) {\n"
            "  counter += step;\n"
            "}\n"
            "#ifdef __cplusplus\n"
            "}\n"
            "#endif\n"
            "int after_guard;\n"
        )
        self.assertEqual([v.name for v in unit.globals], ["counter", "after_guard"])
        self.assertEqual(unit.global_declarations[0].location, tenline.SourceLocation(4, 1))
        self.assertEqual([f.name for f in unit.functions], ["get_count", "bump"])
        self.assertEqual([f.is_definition for f in unit.functions], [False, True])
        self.assertTrue(unit.functions[1].has_leading_comment)

    def test_unclosed_extern_c_block_raises(self) -> None:
        with self.assertRaises(tenline.StructuralParseError) as ctx:
            build("extern \"C\" {\nint counter;\n")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (1, 12))


class FunctionExtractionTests(unittest.TestCase):
    def test_definition_name_params_and_braces(self) -> None:
        unit = build("// adds\nstatic int add(int left, int right) {\n  return left + right;\n}\n")
        function = unit.functions[0]
        self.assertTrue(function.is_definition)
        self.assertEqual(function.name, "add")
        self.assertEqual(function.location, tenline.SourceLocation(2, 12))
        self.assertEqual([p.name for p in function.parameters], ["left", "right"])
        self.assertEqual([p.scope for p in function.parameters], ["param", "param"])
        self.assertEqual(function.open_brace, tenline.SourceLocation(2, 37))
        self.assertEqual(function.close_brace, tenline.SourceLocation(4, 1))
        self.assertTrue(function.has_leading_comment)

    def test_leading_comment_must_be_directly_above(self) -> None:
        unit = build(
            "/* block\n   comment */\nint a(void) { return 1; }\n"
            "// gap\n\nint b(void) { return 2; }\n"
            "int x; // trailing\nint c(void) { return 3; }\n"
        )
        flags = {f.name: f.has_leading_comment for f in unit.function_definitions}
        self.assertEqual(flags, {"a": True, "b": False, "c": False})

    def test_signature_spanning_lines_uses_first_line(self) -> None:
        unit = build("// doc\nstatic double\nscale(double v)\n{\n  return v * 2;\n}\n")
        function = unit.functions[0]
        self.assertEqual(function.signature_line, 2)
        self.assertTrue(function.has_leading_comment)

    def test_unnamed_and_pointer_parameters(self) -> None:
        unit = build("// f\nint run(size_t, char **argv, void (*cb)(int)) { return 0; }\n")
        self.assertEqual([p.name for p in unit.functions[0].parameters], ["argv", "cb"])

    def test_braces_inside_literals_do_not_unbalance(self) -> None:
        unit = build('// f\nvoid f(void) {\n  puts("}}}");\n  c = \'{\';\n}\n// g\nvoid g(void) { }\n')
        self.assertEqual([f.name for f in unit.functions], ["f", "g"])

    def test_debug_block_inside_function_keeps_braces_balanced(self) -> None:
        unit = build("// f\nvoid f(void) {\n#ifdef DEBUG\n  if (x) {\n#endif\n  y();\n#ifdef DEBUG\n  }\n#endif\n}\n")
        self.assertEqual(len(unit.functions), 1)

    def test_unbalanced_braces_raise(self) -> None:
        with self.assertRaises(tenline.StructuralParseError) as ctx:
            build("void f(void) {\n  if (x) {\n}\n")
        self.assertEqual(ctx.exception.line, 1)
        with self.assertRaises(tenline.StructuralParseError):
            build("int x;\n}\n")

    def test_alternative_signatures_under_other_guards_raise(self) -> None:
        text = "#ifdef FOO\nint f(int a) {\n#else\nint f(long a) {\n#endif\n  return 0;\n}\n"
        with self.assertRaises(tenline.StructuralParseError) as ctx:
            build(text)
        self.assertEqual((ctx.exception.line, ctx.exception.column), (2, 14))

    def test_unbalanced_parentheses_raise(self) -> None:
        with self.assertRaises(tenline.StructuralParseError):
            build("int f(int a;\n")

    def test_identifiers_collected_in_source_order(self) -> None:
        unit = build("int total;\n// f\nint f(int arg) {\n  int tmp = arg;\n  return tmp;\n}\n")
        self.assertEqual(
            [(i.name, i.owner) for i in unit.identifiers],
            [("total", "global"), ("f", "function"), ("arg", "parameter"), ("tmp", "local")],
        )


if __name__ == "__main__":
    unittest.main()
