"""Render BibTeX field values written in LaTeX as plain Unicode text.

The renderer walks the source once, descending into brace groups. It knows
enough LaTeX to produce readable text: accents are composed with Unicode
combining marks, common symbols and letters are mapped to their glyphs,
formatting commands keep their argument, and math delimiters are dropped.
It never raises; unknown commands are reported on the result instead.

Case is never changed. Bare brace groups at the top level (BibTeX's case
protection) are removed from the text, and their positions in the output are
reported through :attr:`RenderedText.protected`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import re
import unicodedata


logger = logging.getLogger(__name__)


_CONTROL_WORD_RE = re.compile(r"[A-Za-z]+")
_SPACE_RE = re.compile(r"\s*")
_SPACE_RUN_RE = re.compile(r"\s+")

# Accent commands and the combining mark they stand for.
_ACCENTS: dict[str, str] = {
    "`": "\u0300",
    "'": "\u0301",
    "^": "\u0302",
    "~": "\u0303",
    "=": "\u0304",
    "u": "\u0306",
    ".": "\u0307",
    '"': "\u0308",
    "r": "\u030a",
    "H": "\u030b",
    "v": "\u030c",
    "d": "\u0323",
    "c": "\u0327",
    "k": "\u0328",
    "b": "\u0331",
    "t": "\u0361",
}

_DOTLESS = {"ı": "i", "ȷ": "j"}

# Control symbols (backslash followed by a single non-letter).
_SYMBOLS: dict[str, str] = {
    "&": "&",
    "%": "%",
    "_": "_",
    "#": "#",
    "$": "$",
    "{": "{",
    "}": "}",
    " ": " ",
    "\\": " ",
    ",": " ",
    ";": " ",
    ":": " ",
    "!": "",
    "-": "",
    "/": "",
    "@": "",
}

_WORDS: dict[str, str] = {
    # letters
    "ss": "ß",
    "SS": "SS",
    "ae": "æ",
    "AE": "Æ",
    "oe": "œ",
    "OE": "Œ",
    "aa": "å",
    "AA": "Å",
    "o": "ø",
    "O": "Ø",
    "l": "ł",
    "L": "Ł",
    "i": "ı",
    "j": "ȷ",
    "dh": "ð",
    "DH": "Ð",
    "th": "þ",
    "TH": "Þ",
    "ng": "ŋ",
    "NG": "Ŋ",
    "dj": "đ",
    "DJ": "Đ",
    # punctuation and text symbols
    "dots": "…",
    "ldots": "…",
    "textellipsis": "…",
    "cdots": "⋯",
    "S": "§",
    "P": "¶",
    "copyright": "©",
    "textcopyright": "©",
    "textregistered": "®",
    "texttrademark": "™",
    "pounds": "£",
    "textsterling": "£",
    "euro": "€",
    "texteuro": "€",
    "textdegree": "°",
    "textendash": "–",
    "textemdash": "—",
    "textquoteleft": "‘",
    "textquoteright": "’",
    "textquotedblleft": "“",
    "textquotedblright": "”",
    "guillemotleft": "«",
    "guillemotright": "»",
    "textless": "<",
    "textgreater": ">",
    "textbackslash": "\\",
    "textasciitilde": "~",
    "textasciicircum": "^",
    "textbar": "|",
    "textunderscore": "_",
    "textbullet": "•",
    "textdagger": "†",
    "dag": "†",
    "ddag": "‡",
    "textperiodcentered": "·",
    "slash": "/",
    "quad": " ",
    "qquad": " ",
    "enspace": " ",
    "space": " ",
    # logos
    "TeX": "TeX",
    "LaTeX": "LaTeX",
    "LaTeXe": "LaTeX2e",
    "BibTeX": "BibTeX",
    # greek
    "alpha": "α",
    "beta": "β",
    "gamma": "γ",
    "delta": "δ",
    "epsilon": "ε",
    "varepsilon": "ε",
    "zeta": "ζ",
    "eta": "η",
    "theta": "θ",
    "vartheta": "ϑ",
    "iota": "ι",
    "kappa": "κ",
    "lambda": "λ",
    "mu": "μ",
    "nu": "ν",
    "xi": "ξ",
    "pi": "π",
    "rho": "ρ",
    "sigma": "σ",
    "tau": "τ",
    "upsilon": "υ",
    "phi": "φ",
    "varphi": "φ",
    "chi": "χ",
    "psi": "ψ",
    "omega": "ω",
    "Gamma": "Γ",
    "Delta": "Δ",
    "Theta": "Θ",
    "Lambda": "Λ",
    "Xi": "Ξ",
    "Pi": "Π",
    "Sigma": "Σ",
    "Upsilon": "Υ",
    "Phi": "Φ",
    "Psi": "Ψ",
    "Omega": "Ω",
    # math symbols
    "times": "×",
    "pm": "±",
    "mp": "∓",
    "cdot": "·",
    "circ": "∘",
    "infty": "∞",
    "leq": "≤",
    "le": "≤",
    "geq": "≥",
    "ge": "≥",
    "neq": "≠",
    "ne": "≠",
    "approx": "≈",
    "sim": "∼",
    "equiv": "≡",
    "to": "→",
    "rightarrow": "→",
    "leftarrow": "←",
    "Rightarrow": "⇒",
    "Leftarrow": "⇐",
    "leftrightarrow": "↔",
    "in": "∈",
    "notin": "∉",
    "subset": "⊂",
    "subseteq": "⊆",
    "cup": "∪",
    "cap": "∩",
    "sum": "∑",
    "prod": "∏",
    "int": "∫",
    "partial": "∂",
    "nabla": "∇",
    "forall": "∀",
    "exists": "∃",
    "emptyset": "∅",
    "ell": "ℓ",
    "prime": "′",
    "mid": "|",
    "langle": "⟨",
    "rangle": "⟩",
    "log": "log",
    "ln": "ln",
    "exp": "exp",
    "sin": "sin",
    "cos": "cos",
    "tan": "tan",
    "max": "max",
    "min": "min",
    "lim": "lim",
}

# Commands whose single argument is rendered in place.
_STYLE_COMMANDS = frozenset(
    {
        "textbf",
        "textit",
        "textsl",
        "textsc",
        "texttt",
        "textrm",
        "textsf",
        "textup",
        "textmd",
        "textnormal",
        "emph",
        "text",
        "mbox",
        "hbox",
        "fbox",
        "underline",
        "uline",
        "textsuperscript",
        "textsubscript",
        "mathrm",
        "mathbf",
        "mathit",
        "mathsf",
        "mathtt",
        "mathcal",
        "mathbb",
        "mathfrak",
        "mathnormal",
        "boldsymbol",
        "bm",
        "operatorname",
        "ensuremath",
        "NoCaseChange",
        "MakeUppercase",
        "MakeLowercase",
        "uppercase",
        "lowercase",
    }
)

# Commands whose argument is copied without interpretation.
_VERBATIM_COMMANDS = frozenset({"url", "path", "nolinkurl"})

# Commands whose argument is discarded.
_DROP_ARGUMENT = frozenset({"noopsort", "SortNoop", "sortnoop", "nocite", "label", "index"})

# Font and size declarations that produce no text.
_DECLARATIONS = frozenset(
    {
        "bf",
        "it",
        "em",
        "sl",
        "sc",
        "tt",
        "rm",
        "sf",
        "normalfont",
        "upshape",
        "itshape",
        "slshape",
        "scshape",
        "bfseries",
        "mdseries",
        "ttfamily",
        "rmfamily",
        "sffamily",
        "tiny",
        "scriptsize",
        "footnotesize",
        "small",
        "normalsize",
        "large",
        "Large",
        "LARGE",
        "huge",
        "Huge",
        "relax",
        "protect",
        "displaystyle",
        "left",
        "right",
        "nobreak",
        "noindent",
    }
)


@dataclass(frozen=True, slots=True)
class RenderedText:
    """Plain text produced from a LaTeX string."""

    text: str
    unknown_commands: tuple[str, ...] = ()
    protected: tuple[tuple[int, int], ...] = ()

    def __str__(self) -> str:
        return self.text


class _Output:
    """Text buffer collapsing white space as it is written."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self.length = 0
        self._ends_with_space = True

    def write(self, text: str) -> None:
        if not text:
            return
        text = _SPACE_RUN_RE.sub(" ", text)
        if self._ends_with_space and text.startswith(" "):
            text = text[1:]
            if not text:
                return
        self._parts.append(text)
        self.length += len(text)
        self._ends_with_space = text.endswith(" ")

    def getvalue(self) -> str:
        return "".join(self._parts)


class _RenderPass:
    """State of one rendering call."""

    def __init__(self, source: str) -> None:
        self.text = source
        self.pos = 0
        self.out = _Output()
        self.unknown: list[str] = []
        self.protected: list[tuple[int, int]] = []

    def run(self) -> RenderedText:
        self._render_until(None, math=False, top=True)
        text = self.out.getvalue().rstrip(" ")
        spans = tuple(
            (start, min(stop, len(text)))
            for start, stop in self.protected
            if start < min(stop, len(text))
        )
        return RenderedText(text=text, unknown_commands=tuple(self.unknown), protected=spans)

    def _render_until(self, stop: str | None, *, math: bool, top: bool) -> None:
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char == stop:
                return
            if char == "{":
                self.pos += 1
                start = self.out.length
                self._render_until("}", math=math, top=False)
                self._skip("}")
                if top and not math and self.out.length > start:
                    self.protected.append((start, self.out.length))
            elif char == "}":
                self.pos += 1
            elif char == "\\":
                self._command(math=math)
            elif char == "$":
                self.pos += 1
                if not math:
                    self._math()
            elif math and char in "^_":
                self.pos += 1
                self.out.write(self._argument(math=True))
            elif char == "~":
                self.pos += 1
                self.out.write(" ")
            elif char == "-" and not math:
                self._dash()
            elif text.startswith("``", self.pos):
                self.pos += 2
                self.out.write("“")
            elif text.startswith("''", self.pos):
                self.pos += 2
                self.out.write("”")
            else:
                self.pos += 1
                self.out.write(char)

    def _math(self) -> None:
        display = self.text.startswith("$", self.pos)
        if display:
            self.pos += 1
        self._render_until("$", math=True, top=False)
        self._skip("$")
        if display:
            self._skip("$")

    def _dash(self) -> None:
        if self.text.startswith("---", self.pos):
            self.pos += 3
            self.out.write("—")
        elif self.text.startswith("--", self.pos):
            self.pos += 2
            self.out.write("–")
        else:
            self.pos += 1
            self.out.write("-")

    def _skip(self, char: str) -> None:
        if self.text.startswith(char, self.pos):
            self.pos += 1

    def _capture(self, action: Callable[[], None]) -> str:
        saved = self.out
        self.out = _Output()
        try:
            action()
            return self.out.getvalue().strip(" ")
        finally:
            self.out = saved

    def _argument(self, *, math: bool) -> str:
        """Render the next argument: a brace group, a command, or one character."""
        self.pos = _SPACE_RE.match(self.text, self.pos).end()  # type: ignore[union-attr]
        if self.pos >= len(self.text):
            return ""
        char = self.text[self.pos]
        if char == "}":
            return ""
        if char == "{":
            self.pos += 1

            def _group() -> None:
                self._render_until("}", math=math, top=False)

            rendered = self._capture(_group)
            self._skip("}")
            return rendered
        if char == "\\":
            return self._capture(lambda: self._command(math=math))
        self.pos += 1
        return char

    def _raw_group(self) -> str:
        """Return the next brace group verbatim, without rendering it."""
        self.pos = _SPACE_RE.match(self.text, self.pos).end()  # type: ignore[union-attr]
        if not self.text.startswith("{", self.pos):
            return ""
        depth = 0
        start = self.pos + 1
        for index in range(self.pos, len(self.text)):
            char = self.text[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    self.pos = index + 1
                    return self.text[start:index]
        self.pos = len(self.text)
        return self.text[start:]

    def _command(self, *, math: bool) -> None:
        text = self.text
        self.pos += 1
        if self.pos >= len(text):
            return

        match = _CONTROL_WORD_RE.match(text, self.pos)
        if match is not None:
            name = match.group(0)
            name_end = match.end()
            # TeX discards the white space following a control word.
            self.pos = _SPACE_RE.match(text, name_end).end()  # type: ignore[union-attr]
        else:
            name = text[self.pos]
            self.pos += 1
            name_end = self.pos

        if name in _ACCENTS:
            self.out.write(_compose(self._argument(math=math), _ACCENTS[name]))
        elif match is None and name in _SYMBOLS:
            self.out.write(_SYMBOLS[name])
        elif name in _WORDS:
            self.out.write(_WORDS[name])
        elif name in _STYLE_COMMANDS:
            self.out.write(self._argument(math=math))
        elif name in _VERBATIM_COMMANDS:
            self.out.write(self._raw_group())
        elif name == "href":
            self._raw_group()
            self.out.write(self._argument(math=math))
        elif name in _DROP_ARGUMENT:
            self._argument(math=math)
        elif name in _DECLARATIONS:
            return
        else:
            self._unknown(name, name_end, math=math)

    def _unknown(self, name: str, name_end: int, *, math: bool) -> None:
        self.unknown.append(name)
        logger.debug("no plain-text mapping for LaTeX command \\%s", name)
        if self.text.startswith("{", self.pos):
            while self.text.startswith("{", self.pos):
                self.out.write(self._argument(math=math))
            return
        self.pos = name_end
        self.out.write(name)


def _compose(argument: str, mark: str) -> str:
    """Attach a combining mark to the first character of ``argument``."""
    if not argument:
        return ""
    base = _DOTLESS.get(argument[0], argument[0])
    return unicodedata.normalize("NFC", base + mark + argument[1:])


class LatexRenderer:
    """Convert LaTeX-laden BibTeX field values into plain text."""

    def render(self, source: str) -> RenderedText:
        """Render ``source`` and report unknown commands and protected spans."""
        return _RenderPass(source).run()

    def __call__(self, source: str) -> str:
        return self.render(source).text


def render_latex(source: str) -> str:
    """Return the plain-text rendering of ``source``."""
    return _RenderPass(source).run().text


__all__ = ["LatexRenderer", "RenderedText", "render_latex"]
