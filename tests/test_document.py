"""Tests for document tree construction"""

import codecs

import pytest

from xgrep.document import (
    XML_NAMESPACE,
    DocumentParseError,
    Node,
    decode_document,
    parse_document,
    resolve_namespace,
    split_name,
)
from xgrep.models import Attribute


class TestParseDocument:
    """Tests for parse_document()"""

    def test_builds_nested_tree(self):
        root = parse_document(b'<root><child><grandchild/></child><child2>text</child2></root>')

        assert root.tag == 'root'
        assert [c.tag for c in root.children] == ['child', 'child2']
        assert [c.tag for c in root.children[0].children] == ['grandchild']
        assert root.children[1].children == ()

    def test_attributes_keep_document_order(self):
        root = parse_document(b'<r zeta="1" alpha="2" mid="3"/>')

        assert [a.name for a in root.attributes] == ['zeta', 'alpha', 'mid']
        assert root.attributes[1] == Attribute(name='alpha', value='2')

    def test_duplicate_attributes_are_kept(self):
        root = parse_document(b'<r a="1" b="x" a="2"/>')

        assert [(a.name, a.value) for a in root.attributes] == [('a', '1'), ('b', 'x'), ('a', '2')]

    def test_attribute_values_are_unescaped(self):
        root = parse_document(b'<r title="a &amp; b &#65;&#x42;" q=\'"quoted"\'/>')

        assert root.attributes[0].value == 'a & b AB'
        assert root.attributes[1].value == '"quoted"'

    def test_content_is_inner_markup(self):
        root = parse_document(b'<root a="1"><child b="2">text</child> tail</root>')

        assert root.content == '<child b="2">text</child> tail'
        assert root.children[0].content == 'text'

    def test_content_is_verbatim(self):
        """References, empty element pairs and quoting are left exactly as written"""
        root = parse_document(b'<r>&#65;<b></b> x=&quot;1&quot;<c  k = \'v\' /></r>')

        assert root.content == "&#65;<b></b> x=&quot;1&quot;<c  k = 'v' />"

    def test_content_keeps_line_endings_and_cdata(self):
        root = parse_document(b'<r>\r\n<![CDATA[<raw> & ]]>\r\n</r>')

        assert root.content == '\r\n<![CDATA[<raw> & ]]>\r\n'

    def test_empty_element_has_empty_content(self):
        root = parse_document(b'<root><leaf/><other></other></root>')

        assert root.content == '<leaf/><other></other>'
        assert root.children[0].content == ''
        assert root.children[1].content == ''

    def test_entities_stay_escaped_in_content(self):
        root = parse_document(b'<root>a &amp; b &lt;c&gt;</root>')

        assert root.content == 'a &amp; b &lt;c&gt;'

    def test_default_namespace_is_split_out(self):
        root = parse_document(b'<feed xmlns="http://www.w3.org/2005/Atom"><entry/></feed>')

        assert root.namespace == 'http://www.w3.org/2005/Atom'
        assert root.tag == 'feed'
        assert root.children[0].namespace == 'http://www.w3.org/2005/Atom'
        assert root.children[0].tag == 'entry'

    def test_default_namespace_can_be_undeclared(self):
        root = parse_document(b'<a xmlns="urn:a"><b xmlns=""><c/></b></a>')

        assert root.namespace == 'urn:a'
        assert root.children[0].namespace == ''
        assert root.children[0].children[0].namespace == ''

    def test_prefixed_namespace(self):
        root = parse_document(b'<p:r xmlns:p="urn:p"><p:c>x</p:c></p:r>')

        assert (root.namespace, root.tag) == ('urn:p', 'r')
        assert root.content == '<p:c>x</p:c>'
        assert root.children[0].namespace == 'urn:p'

    def test_prefix_binding_is_scoped(self):
        root = parse_document(b'<r><a xmlns:p="urn:1"><p:x/></a><p:y/></r>')

        assert root.children[0].children[0].namespace == 'urn:1'
        assert root.children[1].namespace == 'p'

    def test_unbound_prefix_is_used_as_namespace(self):
        root = parse_document(b'<a:root><a:x>hi</a:x></a:root>')

        assert (root.namespace, root.tag) == ('a', 'root')
        assert (root.children[0].namespace, root.children[0].tag) == ('a', 'x')
        assert root.content == '<a:x>hi</a:x>'

    def test_element_without_namespace(self):
        root = parse_document(b'<root/>')

        assert root.namespace == ''
        assert root.attributes == ()

    def test_namespaced_attribute_uses_local_name(self):
        root = parse_document(b'<r xmlns:x="urn:x" x:id="7" xml:lang="en"/>')

        assert root.attributes[1] == Attribute(name='id', value='7', namespace='urn:x')
        assert root.attributes[2] == Attribute(name='lang', value='en', namespace=XML_NAMESPACE)

    def test_namespace_declarations_are_attributes(self):
        root = parse_document(b'<r xmlns="urn:a" xmlns:b="urn:b" k="v"/>')

        assert root.attributes == (
            Attribute(name='xmlns', value='urn:a'),
            Attribute(name='b', value='urn:b', namespace='xmlns'),
            Attribute(name='k', value='v'),
        )

    def test_comments_are_content_not_children(self):
        root = parse_document(b'<r><!-- note --><a/><?pi data?></r>')

        assert [c.tag for c in root.children] == ['a']
        assert root.content == '<!-- note --><a/><?pi data?>'

    def test_markup_like_text_in_comments_is_ignored(self):
        root = parse_document(b'<r><!-- <fake> --><a/></r>')

        assert [c.tag for c in root.children] == ['a']

    def test_quoted_gt_in_attribute_does_not_cut_content(self):
        root = parse_document(b'<r t="a>b" u=\'c\'>inner</r>')

        assert root.attributes[0].value == 'a>b'
        assert root.content == 'inner'

    def test_accepts_xml_declaration_and_encoding(self):
        data = '<?xml version="1.0" encoding="UTF-8"?><r>café</r>'.encode('utf-8')

        assert parse_document(data).content == 'café'

    def test_prolog_is_skipped(self):
        data = (
            b'<?xml version="1.0"?>\n'
            b'<!-- header -->\n'
            b'<!DOCTYPE r [\n  <!ELEMENT r (#PCDATA)>\n  <!ATTLIST r id CDATA "x>y">\n]>\n'
            b'<r>body</r>'
        )

        assert parse_document(data).content == 'body'

    def test_content_after_root_is_ignored(self):
        root = parse_document(b'<r>one</r>\n<r2>two</r2> trailing & junk <')

        assert root.tag == 'r'
        assert root.content == 'one'

    def test_deep_nesting(self):
        depth = 1500
        data = ('<n>' * depth + '</n>' * depth).encode()

        node = parse_document(data)
        levels = 1
        while node.children:
            node = node.children[0]
            levels += 1

        assert levels == depth

    @pytest.mark.parametrize(
        'data',
        [
            b'',
            b'   \n',
            b'<root><child></root>',
            b'<root><child>',
            b'<root',
            b'not xml at all',
            b'</root>',
            b'<r a=1/>',
            b'<r a/>',
            b'<r a="<"/>',
            b'<r>a & b</r>',
            b'<r>&nbsp;</r>',
            b'<r>&#0;</r>',
            b'<r>\x01</r>',
            b'<r><!-- open</r>',
            b'<r><![CDATA[open</r>',
            b'<1r/>',
        ],
    )
    def test_malformed_input_raises(self, data):
        with pytest.raises(DocumentParseError):
            parse_document(data)

    def test_error_reports_line(self):
        with pytest.raises(DocumentParseError, match='line 3'):
            parse_document(b'<r>\n<a>\n</b>\n</r>')

    def test_mismatched_end_tag_message(self):
        with pytest.raises(DocumentParseError, match='closed by </b>'):
            parse_document(b'<r><a></b></r>')

    def test_dtd_entities_are_never_expanded(self):
        data = b'<!DOCTYPE r [<!ENTITY e SYSTEM "file:///etc/hostname">]><r>&e;</r>'

        with pytest.raises(DocumentParseError, match='invalid character entity'):
            parse_document(data)


class TestDecodeDocument:
    """Tests for decode_document()"""

    def test_defaults_to_utf8(self):
        assert decode_document('<r>ü</r>'.encode('utf-8')) == '<r>ü</r>'

    def test_strips_utf8_bom(self):
        assert decode_document(codecs.BOM_UTF8 + b'<r/>') == '<r/>'

    def test_utf16_bom(self):
        assert decode_document(codecs.BOM_UTF16_LE + '<r>x</r>'.encode('utf-16-le')) == '<r>x</r>'

    def test_declared_encoding(self):
        data = '<?xml version="1.0" encoding="ISO-8859-1"?><r>é</r>'.encode('latin-1')

        assert decode_document(data).endswith('<r>é</r>')

    def test_unknown_encoding(self):
        with pytest.raises(DocumentParseError, match='unsupported encoding'):
            decode_document(b'<?xml version="1.0" encoding="no-such-codec"?><r/>')

    def test_invalid_utf8(self):
        with pytest.raises(DocumentParseError, match='invalid utf-8'):
            decode_document(b'<r>\xff\xfe</r>')


class TestNames:
    """Tests for split_name() and resolve_namespace()"""

    @pytest.mark.parametrize(
        'name,expected',
        [
            ('tag', ('', 'tag')),
            ('p:tag', ('p', 'tag')),
            (':tag', ('', ':tag')),
            ('p:', ('', 'p:')),
            ('a:b:c', ('', 'a:b:c')),
        ],
    )
    def test_split_name(self, name, expected):
        assert split_name(name) == expected

    def test_unprefixed_attribute_has_no_namespace(self):
        assert resolve_namespace('', 'id', {'': 'urn:default'}, is_element=False) == ''

    def test_unprefixed_element_takes_default(self):
        assert resolve_namespace('', 'item', {'': 'urn:default'}, is_element=True) == 'urn:default'

    def test_xmlns_keeps_its_prefix(self):
        assert resolve_namespace('xmlns', 'p', {'xmlns': 'ignored'}, is_element=False) == 'xmlns'

    def test_unbound_prefix(self):
        assert resolve_namespace('q', 'x', {}, is_element=True) == 'q'


class TestNode:
    """Tests for the Node dataclass"""

    def test_node_is_frozen(self):
        node = Node(namespace='', tag='a')

        with pytest.raises(AttributeError):
            node.tag = 'b'

    def test_defaults(self):
        node = Node(namespace='urn:x', tag='a')

        assert node.attributes == ()
        assert node.content == ''
        assert node.children == ()
