"""
In-memory document tree and the reader that builds it.

The reader is strict about markup (tags must nest and close, attribute values
must be quoted, entity references must be predefined or numeric) but follows
plain XML 1.0 rather than the namespace rules on top of it: attributes may
repeat, prefixes may be left unbound, and ``xmlns`` declarations are ordinary
attributes. An unbound prefix is reported as the namespace itself.

Each node's content is sliced out of the decoded source, so the content
filter sees the markup exactly as written. Only the first element of a file
is read; anything after its end tag is ignored.
"""

import codecs
import logging
import re
from dataclasses import dataclass, field

from xgrep.models import Attribute


logger = logging.getLogger(__name__)


XML_NAMESPACE = 'http://www.w3.org/XML/1998/namespace'
XMLNS = 'xmlns'
PREDEFINED_ENTITIES = {'amp': '&', 'lt': '<', 'gt': '>', 'apos': "'", 'quot': '"'}

NAME = r'(?:[^\W\d]|:)[\w.\-:]*'
START_TAG_RE = re.compile(rf'<({NAME})')
START_TAG_CLOSE_RE = re.compile(r'\s*(/?)>')
ATTRIBUTE_RE = re.compile(rf'\s*({NAME})\s*=\s*(?:"([^"<]*)"|\'([^\'<]*)\')')
END_TAG_RE = re.compile(rf'</({NAME})\s*>')
TEXT_RE = re.compile(r'[^<]+')
ENTITY_RE = re.compile(rf'&(?:#([0-9]+);|#x([0-9a-fA-F]+);|({NAME});)?')
INVALID_CHAR_RE = re.compile('[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]')
ENCODING_RE = re.compile(rb'<\?xml[^>]*?encoding\s*=\s*["\']([A-Za-z][A-Za-z0-9._\-]*)["\']')

BOMS = (
    (codecs.BOM_UTF8, 'utf-8'),
    (codecs.BOM_UTF16_LE, 'utf-16-le'),
    (codecs.BOM_UTF16_BE, 'utf-16-be'),
)


class DocumentParseError(ValueError):
    """Raised when bytes cannot be turned into a document tree"""


@dataclass(frozen=True)
class Node:
    """
    One XML element.

    Attributes:
        namespace: Namespace URI of the element (or its unbound prefix), empty when it has none
        tag: Local name of the element
        attributes: Attributes in document order, namespace declarations and duplicates included
        content: Inner markup exactly as written in the source
        children: Element children in document order
    """

    namespace: str
    tag: str
    attributes: tuple[Attribute, ...] = field(default_factory=tuple)
    content: str = ''
    children: tuple['Node', ...] = field(default_factory=tuple)


@dataclass
class _OpenElement:
    """An element whose end tag has not been read yet"""

    raw_name: str
    namespace: str
    tag: str
    attributes: tuple[Attribute, ...]
    namespaces: dict[str, str]
    content_start: int
    children: list[Node] = field(default_factory=list)


def split_name(name: str) -> tuple[str, str]:
    """Split ``prefix:local``; names without exactly one usable colon have no prefix"""
    prefix, sep, local = name.partition(':')
    if not sep or not prefix or not local or ':' in local:
        return '', name
    return prefix, local


def resolve_namespace(prefix: str, local: str, namespaces: dict[str, str], is_element: bool) -> str:
    """
    Map a prefix to its namespace URI.

    Unprefixed elements take the default namespace, unprefixed attributes
    have none, ``xmlns`` declarations keep ``xmlns`` as their namespace and
    an unbound prefix stands for itself.
    """
    if prefix == XMLNS:
        return prefix
    if not prefix and (not is_element or local == XMLNS):
        return ''
    if prefix == 'xml':
        return XML_NAMESPACE
    return namespaces.get(prefix, prefix)


def _is_xml_char(code: int) -> bool:
    return (
        code in (0x9, 0xA, 0xD)
        or 0x20 <= code <= 0xD7FF
        or 0xE000 <= code <= 0xFFFD
        or 0x10000 <= code <= 0x10FFFF
    )


def _decode(data: bytes, encoding: str) -> str:
    try:
        return data.decode(encoding)
    except LookupError as e:
        raise DocumentParseError(f'unsupported encoding {encoding!r}') from e
    except UnicodeDecodeError as e:
        raise DocumentParseError(f'invalid {encoding} input: {e}') from e


def decode_document(data: bytes) -> str:
    """Decode raw bytes using the byte order mark, then the XML declaration, then UTF-8"""
    for bom, encoding in BOMS:
        if data.startswith(bom):
            return _decode(data[len(bom) :], encoding)

    declared = ENCODING_RE.match(data)
    encoding = declared.group(1).decode('ascii') if declared else 'utf-8'
    return _decode(data, encoding)


class DocumentReader:
    """
    Single-pass reader turning decoded text into a Node tree.

    Open elements are kept on an explicit stack, so nesting depth is not
    limited by the interpreter's recursion limit.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.stack: list[_OpenElement] = []
        self.root: Node | None = None

    def error(self, message: str, pos: int | None = None) -> DocumentParseError:
        pos = self.pos if pos is None else pos
        line = self.text.count('\n', 0, pos) + 1
        return DocumentParseError(f'line {line}: {message}')

    def read(self) -> Node:
        if not self.text.strip():
            raise DocumentParseError('document is empty')

        while self.root is None:
            if self.pos >= len(self.text):
                if self.stack:
                    raise self.error(f'unexpected end of document inside <{self.stack[-1].raw_name}>')
                raise self.error('no root element found')

            if self.text.startswith('<', self.pos):
                self._read_markup()
            else:
                self._read_text()

        return self.root

    def _read_markup(self) -> None:
        text, pos = self.text, self.pos
        if text.startswith('</', pos):
            self._read_end_tag()
        elif text.startswith('<!--', pos):
            self._skip_until('-->', 'comment')
        elif text.startswith('<![CDATA[', pos):
            self._skip_until(']]>', 'CDATA section')
        elif text.startswith('<?', pos):
            self._skip_until('?>', 'processing instruction')
        elif text.startswith('<!', pos):
            self._skip_directive()
        else:
            self._read_start_tag()

    def _read_text(self) -> None:
        match = TEXT_RE.match(self.text, self.pos)
        self.unescape(match.group(0), self.pos)
        self.pos = match.end()

    def _skip_until(self, terminator: str, what: str) -> None:
        end = self.text.find(terminator, self.pos)
        if end == -1:
            raise self.error(f'unterminated {what}')
        self.pos = end + len(terminator)

    def _skip_directive(self) -> None:
        """Skip ``<!DOCTYPE ...>`` and similar, including a bracketed internal subset"""
        text = self.text
        depth = 0
        quote = None
        i = self.pos + 2
        while i < len(text):
            ch = text[i]
            if quote:
                if ch == quote:
                    quote = None
            elif ch in ('"', "'"):
                quote = ch
            elif text.startswith('<!--', i):
                end = text.find('-->', i + 4)
                if end == -1:
                    break
                i = end + 3
                continue
            elif ch == '<':
                depth += 1
            elif ch == '>':
                if depth == 0:
                    self.pos = i + 1
                    return
                depth -= 1
            i += 1
        raise self.error('unterminated directive')

    def _read_start_tag(self) -> None:
        text = self.text
        match = START_TAG_RE.match(text, self.pos)
        if match is None:
            raise self.error('invalid start tag')

        raw_name = match.group(1)
        raw_attrs = []
        i = match.end()
        while True:
            close = START_TAG_CLOSE_RE.match(text, i)
            if close is not None:
                break
            attr = ATTRIBUTE_RE.match(text, i)
            if attr is None:
                if i >= len(text):
                    raise self.error(f'unexpected end of document in <{raw_name}>', i)
                raise self.error(f'malformed attribute in <{raw_name}>', i)
            value = attr.group(2) if attr.group(2) is not None else attr.group(3)
            raw_attrs.append((attr.group(1), self.unescape(value, attr.start())))
            i = attr.end()

        namespaces = self.stack[-1].namespaces if self.stack else {}
        bindings = {}
        for name, value in raw_attrs:
            prefix, local = split_name(name)
            if prefix == XMLNS:
                bindings[local] = value
            elif not prefix and local == XMLNS:
                bindings[''] = value
        if bindings:
            namespaces = {**namespaces, **bindings}

        attributes = []
        for name, value in raw_attrs:
            prefix, local = split_name(name)
            attributes.append(
                Attribute(
                    name=local,
                    value=value,
                    namespace=resolve_namespace(prefix, local, namespaces, is_element=False),
                )
            )

        prefix, local = split_name(raw_name)
        namespace = resolve_namespace(prefix, local, namespaces, is_element=True)
        self.pos = close.end()

        if close.group(1):
            self._close(Node(namespace=namespace, tag=local, attributes=tuple(attributes)))
        else:
            self.stack.append(
                _OpenElement(
                    raw_name=raw_name,
                    namespace=namespace,
                    tag=local,
                    attributes=tuple(attributes),
                    namespaces=namespaces,
                    content_start=self.pos,
                )
            )

    def _read_end_tag(self) -> None:
        match = END_TAG_RE.match(self.text, self.pos)
        if match is None:
            raise self.error('invalid end tag')
        if not self.stack:
            raise self.error(f'unexpected end element </{match.group(1)}>')

        element = self.stack.pop()
        if match.group(1) != element.raw_name:
            raise self.error(f'element <{element.raw_name}> closed by </{match.group(1)}>')

        node = Node(
            namespace=element.namespace,
            tag=element.tag,
            attributes=element.attributes,
            content=self.text[element.content_start : self.pos],
            children=tuple(element.children),
        )
        self.pos = match.end()
        self._close(node)

    def _close(self, node: Node) -> None:
        if self.stack:
            self.stack[-1].children.append(node)
        else:
            self.root = node

    def unescape(self, value: str, pos: int) -> str:
        """Replace entity references, rejecting illegal characters and unknown entities"""
        invalid = INVALID_CHAR_RE.search(value)
        if invalid is not None:
            raise self.error(f'illegal character {invalid.group(0)!r}', pos + invalid.start())
        if '&' not in value:
            return value

        def replace(match: re.Match) -> str:
            decimal, hexadecimal, name = match.groups()
            if decimal or hexadecimal:
                code = int(decimal, 10) if decimal else int(hexadecimal, 16)
                if _is_xml_char(code):
                    return chr(code)
            elif name in PREDEFINED_ENTITIES:
                return PREDEFINED_ENTITIES[name]
            raise self.error(f'invalid character entity {match.group(0)!r}', pos + match.start())

        return ENTITY_RE.sub(replace, value)


def parse_document(data: bytes) -> Node:
    """
    Parse raw file bytes into a document tree.

    Args:
        data: Raw bytes of an XML document

    Returns:
        Root node of the document

    Raises:
        DocumentParseError: On empty, malformed, truncated or undecodable input
    """
    root = DocumentReader(decode_document(data)).read()
    logger.debug(f'[PARSE] Parsed root element <{root.tag}> in namespace {root.namespace!r}')
    return root
