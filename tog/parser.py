"""TOG Parser: recursive-descent parser with precedence climbing.

Parses a token stream into an AST. Fails on the first mismatch with a
ParseError carrying expected/found and the offending position.

Top-level items:
  fn name(params) -> T { ... }
  struct Name { field: T, ...  fn method(self) { ... } }
  enum Name { Variant, Variant(T), ... }
  trait Name { fn method(self) -> T }
  impl Trait for Type { ... }  |  impl Type { ... }
  let / expression statements

The one lookahead decision: ``Identifier {`` starts a struct literal only
when the two tokens after ``{`` are ``Identifier :``. Otherwise the ``{``
belongs to the enclosing construct (an if/while body, a match arm list...).
Condition heads are parsed with struct literals disabled altogether.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from tog.lexer import Token, TokenType, tokenize
from tog.ast_nodes import (
    Program, Item, FunctionDef, StructDef, FieldDef, EnumDef, VariantDef,
    TraitDef, MethodSig, ImplBlock, Param, TypeAnnotation,
    Statement, LetStmt, AssignStmt, ExprStmt, ReturnStmt, WhileStmt, ForStmt,
    BreakStmt, ContinueStmt,
    Expr, IntLiteral, FloatLiteral, StringLiteral, BoolLiteral, NoneLiteral,
    Identifier, BinaryOp, UnaryOp, FunctionCall, FieldAccess, MethodCall,
    IndexExpr, ArrayLiteral, StructLiteral, EnumVariantExpr, BlockExpr, IfExpr,
    MatchExpr, MatchArm, LambdaExpr,
    Pattern, WildcardPattern, LiteralPattern, IdentPattern, VariantPattern,
)
from tog.errors import SourceLocation, ParseError


# Expressions that end at their closing brace when they open a statement or arm.
_BLOCK_LIKE = (TokenType.IF, TokenType.MATCH, TokenType.LBRACE)


def _describe(tok: Token) -> str:
    if tok.type == TokenType.EOF:
        return "end of input"
    return f"'{tok.value}'"


class Parser:
    """Recursive-descent parser for TOG."""

    def __init__(self, tokens: list[Token], filename: str = "<stdin>"):
        self.tokens = tokens
        self.pos = 0
        self.filename = filename
        self._struct_literals_allowed = True

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self) -> TokenType:
        return self._current().type

    def _peek_at(self, offset: int) -> TokenType:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx].type
        return TokenType.EOF

    def _loc(self) -> SourceLocation:
        return self._current().location

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _error(self, expected: str) -> ParseError:
        tok = self._current()
        return ParseError(expected, _describe(tok), tok.location)

    def _expect(self, tt: TokenType, what: Optional[str] = None) -> Token:
        if self._peek() != tt:
            raise self._error(what or tt.name)
        return self._advance()

    def _match(self, tt: TokenType) -> Optional[Token]:
        if self._peek() == tt:
            return self._advance()
        return None

    @contextmanager
    def _struct_literals(self, allowed: bool) -> Iterator[None]:
        saved = self._struct_literals_allowed
        self._struct_literals_allowed = allowed
        try:
            yield
        finally:
            self._struct_literals_allowed = saved

    # -------------------------------------------------------------------
    # Top-level
    # -------------------------------------------------------------------

    def parse(self) -> Program:
        items: list[Item | Statement] = []
        while self._peek() != TokenType.EOF:
            tt = self._peek()
            if tt == TokenType.STRUCT:
                items.append(self._parse_struct_def())
            elif tt == TokenType.ENUM:
                items.append(self._parse_enum_def())
            elif tt == TokenType.TRAIT:
                items.append(self._parse_trait_def())
            elif tt == TokenType.IMPL:
                items.append(self._parse_impl_block())
            else:
                items.append(self._parse_statement())
            if self._match(TokenType.SEMICOLON):
                if isinstance(items[-1], ExprStmt):
                    items[-1].terminated = True
                self._skip_semicolons()
        return Program(items=items, filename=self.filename)

    def _skip_semicolons(self) -> None:
        while self._match(TokenType.SEMICOLON):
            pass

    # -------------------------------------------------------------------
    # Type annotations
    # -------------------------------------------------------------------

    def _parse_type_annotation(self) -> TypeAnnotation:
        loc = self._loc()
        if self._match(TokenType.NONE):
            return TypeAnnotation(name="none", location=loc)
        name = self._expect(TokenType.IDENT, "type name").value
        element: Optional[TypeAnnotation] = None
        if self._match(TokenType.LBRACKET):
            element = self._parse_type_annotation()
            self._expect(TokenType.RBRACKET, "']'")
        return TypeAnnotation(name=name, element=element, location=loc)

    # -------------------------------------------------------------------
    # fn
    # -------------------------------------------------------------------

    def _parse_param_list(self) -> list[Param]:
        self._expect(TokenType.LPAREN, "'('")
        params: list[Param] = []
        if self._peek() != TokenType.RPAREN:
            params.append(self._parse_param())
            while self._match(TokenType.COMMA):
                if self._peek() == TokenType.RPAREN:
                    break  # trailing comma
                params.append(self._parse_param())
        self._expect(TokenType.RPAREN, "')'")
        return params

    def _parse_param(self) -> Param:
        loc = self._loc()
        name = self._expect(TokenType.IDENT, "parameter name").value
        type_ann: Optional[TypeAnnotation] = None
        if self._match(TokenType.COLON):
            type_ann = self._parse_type_annotation()
        return Param(name=name, type_annotation=type_ann, location=loc)

    def _parse_return_type(self) -> Optional[TypeAnnotation]:
        if self._match(TokenType.ARROW):
            return self._parse_type_annotation()
        return None

    def _parse_function_def(self) -> FunctionDef:
        loc = self._loc()
        self._expect(TokenType.FN, "'fn'")
        name = self._expect(TokenType.IDENT, "function name").value
        params = self._parse_param_list()
        return_type = self._parse_return_type()
        body = self._parse_block()
        return FunctionDef(name=name, params=params, return_type=return_type, body=body, location=loc)

    # -------------------------------------------------------------------
    # struct
    # -------------------------------------------------------------------

    def _parse_struct_def(self) -> StructDef:
        loc = self._loc()
        self._expect(TokenType.STRUCT)
        name = self._expect(TokenType.IDENT, "struct name").value
        self._expect(TokenType.LBRACE, "'{'")
        fields: list[FieldDef] = []
        methods: list[FunctionDef] = []
        while self._peek() == TokenType.IDENT:
            floc = self._loc()
            fname = self._expect(TokenType.IDENT, "field name").value
            type_ann: Optional[TypeAnnotation] = None
            if self._match(TokenType.COLON):
                type_ann = self._parse_type_annotation()
            fields.append(FieldDef(name=fname, type_annotation=type_ann, location=floc))
            self._match(TokenType.COMMA)
        while self._peek() == TokenType.FN:
            methods.append(self._parse_function_def())
            self._skip_semicolons()
        self._expect(TokenType.RBRACE, "'}'")
        return StructDef(name=name, fields=fields, methods=methods, location=loc)

    # -------------------------------------------------------------------
    # enum
    # -------------------------------------------------------------------

    def _parse_enum_def(self) -> EnumDef:
        loc = self._loc()
        self._expect(TokenType.ENUM)
        name = self._expect(TokenType.IDENT, "enum name").value
        self._expect(TokenType.LBRACE, "'{'")
        variants: list[VariantDef] = []
        while self._peek() == TokenType.IDENT:
            vloc = self._loc()
            vname = self._expect(TokenType.IDENT, "variant name").value
            payload: Optional[TypeAnnotation] = None
            if self._match(TokenType.LPAREN):
                payload = self._parse_type_annotation()
                self._expect(TokenType.RPAREN, "')'")
            variants.append(VariantDef(name=vname, payload_type=payload, location=vloc))
            self._match(TokenType.COMMA)
        self._expect(TokenType.RBRACE, "'}'")
        return EnumDef(name=name, variants=variants, location=loc)

    # -------------------------------------------------------------------
    # trait
    # -------------------------------------------------------------------

    def _parse_trait_def(self) -> TraitDef:
        loc = self._loc()
        self._expect(TokenType.TRAIT)
        name = self._expect(TokenType.IDENT, "trait name").value
        self._expect(TokenType.LBRACE, "'{'")
        methods: list[MethodSig] = []
        while self._peek() != TokenType.RBRACE:
            mloc = self._loc()
            self._expect(TokenType.FN, "'fn' in trait body")
            mname = self._expect(TokenType.IDENT, "method name").value
            params = self._parse_param_list()
            return_type = self._parse_return_type()
            self._skip_semicolons()
            methods.append(MethodSig(name=mname, params=params, return_type=return_type, location=mloc))
        self._expect(TokenType.RBRACE, "'}'")
        return TraitDef(name=name, methods=methods, location=loc)

    # -------------------------------------------------------------------
    # impl
    # -------------------------------------------------------------------

    def _parse_impl_block(self) -> ImplBlock:
        loc = self._loc()
        self._expect(TokenType.IMPL)
        first_name = self._expect(TokenType.IDENT, "trait or type name").value

        trait_name: Optional[str] = None
        type_name = first_name

        # Check for "for Type" (trait impl)
        if self._match(TokenType.FOR):
            trait_name = first_name
            type_name = self._expect(TokenType.IDENT, "type name").value

        self._expect(TokenType.LBRACE, "'{'")
        methods: list[FunctionDef] = []
        while self._peek() != TokenType.RBRACE:
            if self._peek() != TokenType.FN:
                raise self._error("'fn' in impl body")
            methods.append(self._parse_function_def())
            self._skip_semicolons()
        self._expect(TokenType.RBRACE, "'}'")
        return ImplBlock(trait_name=trait_name, type_name=type_name, methods=methods, location=loc)

    # -------------------------------------------------------------------
    # Blocks and statements
    # -------------------------------------------------------------------

    def _parse_block(self) -> BlockExpr:
        loc = self._loc()
        self._expect(TokenType.LBRACE, "'{'")
        with self._struct_literals(True):
            stmts: list[Statement] = []
            while self._peek() not in (TokenType.RBRACE, TokenType.EOF):
                stmts.append(self._parse_statement())
                if self._match(TokenType.SEMICOLON):
                    if isinstance(stmts[-1], ExprStmt):
                        stmts[-1].terminated = True
                    self._skip_semicolons()
        self._expect(TokenType.RBRACE, "'}'")
        return BlockExpr(statements=stmts, location=loc)

    def _parse_statement(self) -> Statement:
        tt = self._peek()
        loc = self._loc()

        if tt == TokenType.LET:
            return self._parse_let()
        elif tt == TokenType.RETURN:
            return self._parse_return()
        elif tt == TokenType.WHILE:
            return self._parse_while()
        elif tt == TokenType.FOR:
            return self._parse_for()
        elif tt == TokenType.BREAK:
            self._advance()
            return BreakStmt(location=loc)
        elif tt == TokenType.CONTINUE:
            self._advance()
            return ContinueStmt(location=loc)
        elif tt == TokenType.FN and self._peek_at(1) == TokenType.IDENT:
            return self._parse_function_def()
        elif tt in _BLOCK_LIKE:
            return ExprStmt(expr=self._parse_block_like(), location=loc)
        else:
            return self._parse_expr_or_assign_stmt()

    def _parse_let(self) -> LetStmt:
        loc = self._loc()
        self._expect(TokenType.LET)
        name = self._expect(TokenType.IDENT, "variable name").value
        type_ann: Optional[TypeAnnotation] = None
        if self._match(TokenType.COLON):
            type_ann = self._parse_type_annotation()
        self._expect(TokenType.ASSIGN, "'='")
        value = self._parse_expression()
        return LetStmt(name=name, type_annotation=type_ann, value=value, location=loc)

    def _parse_return(self) -> ReturnStmt:
        loc = self._loc()
        self._expect(TokenType.RETURN)
        value: Optional[Expr] = None
        if self._peek() not in (TokenType.RBRACE, TokenType.SEMICOLON, TokenType.EOF):
            value = self._parse_expression()
        return ReturnStmt(value=value, location=loc)

    def _parse_while(self) -> WhileStmt:
        loc = self._loc()
        self._expect(TokenType.WHILE)
        with self._struct_literals(False):
            condition = self._parse_expression()
        body = self._parse_block()
        return WhileStmt(condition=condition, body=body, location=loc)

    def _parse_for(self) -> ForStmt:
        """Parse: for x in expr { body }"""
        loc = self._loc()
        self._expect(TokenType.FOR)
        var_name = self._expect(TokenType.IDENT, "loop variable").value
        self._expect(TokenType.IN, "'in'")
        with self._struct_literals(False):
            iterable = self._parse_expression()
        body = self._parse_block()
        return ForStmt(var_name=var_name, iterable=iterable, body=body, location=loc)

    def _parse_expr_or_assign_stmt(self) -> Statement:
        loc = self._loc()
        expr = self._parse_expression()
        if self._match(TokenType.ASSIGN):
            if not isinstance(expr, (Identifier, FieldAccess, IndexExpr)):
                raise ParseError("assignable expression", type(expr).__name__, loc)
            value = self._parse_expression()
            return AssignStmt(target=expr, value=value, location=loc)
        return ExprStmt(expr=expr, location=loc)

    # -------------------------------------------------------------------
    # Expressions (precedence climbing)
    # -------------------------------------------------------------------

    def _parse_expression(self) -> Expr:
        return self._parse_or()

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        while self._peek() == TokenType.OR:
            loc = self._loc()
            self._advance()
            right = self._parse_and()
            left = BinaryOp(op="||", left=left, right=right, location=loc)
        return left

    def _parse_and(self) -> Expr:
        left = self._parse_equality()
        while self._peek() == TokenType.AND:
            loc = self._loc()
            self._advance()
            right = self._parse_equality()
            left = BinaryOp(op="&&", left=left, right=right, location=loc)
        return left

    def _parse_equality(self) -> Expr:
        left = self._parse_comparison()
        while self._peek() in (TokenType.EQ, TokenType.NEQ):
            loc = self._loc()
            op = self._advance().value
            right = self._parse_comparison()
            left = BinaryOp(op=op, left=left, right=right, location=loc)
        return left

    def _parse_comparison(self) -> Expr:
        left = self._parse_additive()
        while self._peek() in (TokenType.LT, TokenType.GT, TokenType.LTE, TokenType.GTE):
            loc = self._loc()
            op = self._advance().value
            right = self._parse_additive()
            left = BinaryOp(op=op, left=left, right=right, location=loc)
        return left

    def _parse_additive(self) -> Expr:
        left = self._parse_multiplicative()
        while self._peek() in (TokenType.PLUS, TokenType.MINUS):
            loc = self._loc()
            op = self._advance().value
            right = self._parse_multiplicative()
            left = BinaryOp(op=op, left=left, right=right, location=loc)
        return left

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while self._peek() in (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT):
            loc = self._loc()
            op = self._advance().value
            right = self._parse_unary()
            left = BinaryOp(op=op, left=left, right=right, location=loc)
        return left

    def _parse_unary(self) -> Expr:
        if self._peek() in (TokenType.MINUS, TokenType.NOT):
            loc = self._loc()
            op = self._advance().value
            operand = self._parse_unary()
            return UnaryOp(op=op, operand=operand, location=loc)
        return self._parse_postfix()

    def _parse_args(self) -> list[Expr]:
        self._expect(TokenType.LPAREN, "'('")
        args: list[Expr] = []
        with self._struct_literals(True):
            if self._peek() != TokenType.RPAREN:
                args.append(self._parse_expression())
                while self._match(TokenType.COMMA):
                    if self._peek() == TokenType.RPAREN:
                        break
                    args.append(self._parse_expression())
        self._expect(TokenType.RPAREN, "')'")
        return args

    def _parse_member(self, expr: Expr) -> Expr:
        loc = self._loc()
        self._expect(TokenType.DOT)
        name = self._expect(TokenType.IDENT, "field or method name").value
        if self._peek() == TokenType.LPAREN:
            return MethodCall(obj=expr, method_name=name, args=self._parse_args(), location=loc)
        return FieldAccess(obj=expr, field_name=name, location=loc)

    def _parse_postfix(self) -> Expr:
        expr = self._parse_primary()
        while True:
            loc = self._loc()
            if self._peek() == TokenType.LPAREN:
                expr = FunctionCall(callee=expr, args=self._parse_args(), location=loc)
            elif self._peek() == TokenType.LBRACKET:
                self._advance()
                with self._struct_literals(True):
                    index = self._parse_expression()
                self._expect(TokenType.RBRACKET, "']'")
                expr = IndexExpr(obj=expr, index=index, location=loc)
            elif self._peek() == TokenType.DOT:
                expr = self._parse_member(expr)
            else:
                break
        return expr

    def _parse_block_like(self) -> Expr:
        """Parse an `if`, `match` or block that ends at its closing brace.

        Only `.field` and `.method()` may follow it, so a next line opening
        with `-`, `(` or `[` starts a new statement or arm.
        """
        expr = self._parse_primary()
        while self._peek() == TokenType.DOT:
            expr = self._parse_member(expr)
        return expr

    def _parse_primary(self) -> Expr:
        tt = self._peek()
        loc = self._loc()

        if tt == TokenType.INT_LIT:
            return IntLiteral(value=int(self._advance().value), location=loc)

        if tt == TokenType.FLOAT_LIT:
            return FloatLiteral(value=float(self._advance().value), location=loc)

        if tt == TokenType.STRING_LIT:
            return StringLiteral(value=self._advance().value, location=loc)

        if tt in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return BoolLiteral(value=tt == TokenType.TRUE, location=loc)

        if tt == TokenType.NONE:
            self._advance()
            return NoneLiteral(location=loc)

        if tt == TokenType.IDENT:
            if self._peek_at(1) == TokenType.DOUBLE_COLON:
                return self._parse_variant_expr()
            if self._starts_struct_literal():
                return self._parse_struct_literal()
            name = self._advance().value
            if name == "_":
                raise ParseError("expression", "'_' (only valid as a pattern)", loc)
            return Identifier(name=name, location=loc)

        if tt == TokenType.LPAREN:
            self._advance()
            with self._struct_literals(True):
                expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        if tt == TokenType.LBRACKET:
            self._advance()
            elements: list[Expr] = []
            with self._struct_literals(True):
                if self._peek() != TokenType.RBRACKET:
                    elements.append(self._parse_expression())
                    while self._match(TokenType.COMMA):
                        if self._peek() == TokenType.RBRACKET:
                            break
                        elements.append(self._parse_expression())
            self._expect(TokenType.RBRACKET, "']'")
            return ArrayLiteral(elements=elements, location=loc)

        if tt == TokenType.LBRACE:
            return self._parse_block()

        if tt == TokenType.IF:
            return self._parse_if()

        if tt == TokenType.MATCH:
            return self._parse_match_expr()

        if tt == TokenType.FN:
            self._advance()
            params = self._parse_param_list()
            body = self._parse_block()
            return LambdaExpr(params=params, body=body, location=loc)

        raise self._error("expression")

    # -------------------------------------------------------------------
    # if
    # -------------------------------------------------------------------

    def _parse_if(self) -> IfExpr:
        loc = self._loc()
        self._expect(TokenType.IF)
        with self._struct_literals(False):
            condition = self._parse_expression()
        then_block = self._parse_block()
        else_branch: Optional[Expr] = None
        if self._match(TokenType.ELSE):
            if self._peek() == TokenType.IF:
                else_branch = self._parse_if()
            else:
                else_branch = self._parse_block()
        return IfExpr(condition=condition, then_block=then_block, else_branch=else_branch, location=loc)

    # -------------------------------------------------------------------
    # Type::Variant, shared by expressions and patterns
    # -------------------------------------------------------------------

    def _parse_variant_path(self) -> tuple[str, str, SourceLocation]:
        loc = self._loc()
        enum_name = self._expect(TokenType.IDENT, "enum name").value
        self._expect(TokenType.DOUBLE_COLON, "'::'")
        variant_name = self._expect(TokenType.IDENT, "variant name").value
        return enum_name, variant_name, loc

    def _parse_variant_expr(self) -> EnumVariantExpr:
        enum_name, variant_name, loc = self._parse_variant_path()
        payload: Optional[Expr] = None
        if self._peek() == TokenType.LPAREN:
            args = self._parse_args()
            if len(args) != 1:
                raise ParseError(
                    "exactly one variant payload",
                    f"{len(args)} arguments",
                    loc,
                )
            payload = args[0]
        return EnumVariantExpr(enum_name=enum_name, variant_name=variant_name, payload=payload, location=loc)

    # -------------------------------------------------------------------
    # struct literal
    # -------------------------------------------------------------------

    def _starts_struct_literal(self) -> bool:
        """Peek past ``Identifier {`` for ``Identifier :`` without consuming."""
        return (
            self._struct_literals_allowed
            and self._peek_at(1) == TokenType.LBRACE
            and self._peek_at(2) == TokenType.IDENT
            and self._peek_at(3) == TokenType.COLON
        )

    def _parse_struct_literal(self) -> StructLiteral:
        loc = self._loc()
        type_name = self._expect(TokenType.IDENT).value
        self._expect(TokenType.LBRACE, "'{'")
        fields: list[tuple[str, Expr]] = []
        with self._struct_literals(True):
            while self._peek() != TokenType.RBRACE:
                fname = self._expect(TokenType.IDENT, "field name").value
                self._expect(TokenType.COLON, "':'")
                fields.append((fname, self._parse_expression()))
                if not self._match(TokenType.COMMA):
                    break
        self._expect(TokenType.RBRACE, "'}'")
        return StructLiteral(type_name=type_name, fields=fields, location=loc)

    # -------------------------------------------------------------------
    # match expression
    # -------------------------------------------------------------------

    def _parse_match_expr(self) -> MatchExpr:
        """Parse: match expr { pattern => expr, ... }"""
        loc = self._loc()
        self._expect(TokenType.MATCH)
        with self._struct_literals(False):
            subject = self._parse_expression()
        self._expect(TokenType.LBRACE, "'{' opening match arms")
        arms: list[MatchArm] = []
        with self._struct_literals(True):
            while self._peek() != TokenType.RBRACE:
                arm, braced = self._parse_match_arm()
                arms.append(arm)
                # a comma is optional only after a brace-delimited body
                if not self._match(TokenType.COMMA) and not braced:
                    if self._peek() != TokenType.RBRACE:
                        raise self._error("',' or '}' after match arm")
        self._expect(TokenType.RBRACE, "'}'")
        return MatchExpr(subject=subject, arms=arms, location=loc)

    def _parse_match_arm(self) -> tuple[MatchArm, bool]:
        loc = self._loc()
        pattern = self._parse_pattern()
        self._expect(TokenType.FAT_ARROW, "'=>'")
        braced = self._peek() in _BLOCK_LIKE
        if braced:
            body = self._parse_block_like()
        else:
            body = self._parse_expression()
        return MatchArm(pattern=pattern, body=body, location=loc), braced

    def _parse_pattern(self) -> Pattern:
        loc = self._loc()
        tt = self._peek()

        if tt == TokenType.MINUS and self._peek_at(1) in (TokenType.INT_LIT, TokenType.FLOAT_LIT):
            self._advance()
            tok = self._advance()
            number = int(tok.value) if tok.type == TokenType.INT_LIT else float(tok.value)
            return LiteralPattern(value=-number, location=loc)

        if tt == TokenType.INT_LIT:
            return LiteralPattern(value=int(self._advance().value), location=loc)

        if tt == TokenType.FLOAT_LIT:
            return LiteralPattern(value=float(self._advance().value), location=loc)

        if tt == TokenType.STRING_LIT:
            return LiteralPattern(value=self._advance().value, location=loc)

        if tt in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return LiteralPattern(value=tt == TokenType.TRUE, location=loc)

        if tt == TokenType.NONE:
            self._advance()
            return LiteralPattern(value=None, location=loc)

        if tt == TokenType.IDENT:
            if self._peek_at(1) == TokenType.DOUBLE_COLON:
                enum_name, variant_name, loc = self._parse_variant_path()
                binder: Optional[str] = None
                has_payload = False
                if self._match(TokenType.LPAREN):
                    has_payload = True
                    name = self._expect(TokenType.IDENT, "binding name").value
                    binder = None if name == "_" else name
                    self._expect(TokenType.RPAREN, "')'")
                return VariantPattern(
                    enum_name=enum_name, variant_name=variant_name,
                    binder=binder, has_payload=has_payload, location=loc,
                )
            name = self._advance().value
            if name == "_":
                return WildcardPattern(location=loc)
            return IdentPattern(name=name, location=loc)

        raise self._error("pattern")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_tokens(tokens: list[Token], filename: str = "<stdin>") -> Program:
    return Parser(tokens, filename).parse()


def parse(source: str, filename: str = "<stdin>") -> Program:
    """Parse TOG source code into an AST."""
    return parse_tokens(tokenize(source, filename), filename)
