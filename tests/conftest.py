import textwrap
import zipfile

import pytest

from config_tree import Namespace

FILES = {
    "test.properties": """
        value=13
        greeting = hello world
    """,
    "typed.properties": """
        count=13
        count.type=int
        ratio=0.5
        ratio.type=double
        flags=true
        flags=false
        flags.type=boolean
        bad=abc
        bad.type=int
        odd=x
        odd.type=nosuchtype
    """,
    "default.properties": """
        name=Henri
        name=Fred
        url=yandell.org
        com.genjava=Foo
    """,
    "thing/type/bob.properties": """
        age=24
        age=25
        age=99
    """,
    "xmltest.xml": """
        <config>
            <value>13</value>
            <four><five>Bang</five></four>
            <one two="three"/>
            <multi>
                <item>one</item>
                <item>two</item>
            </multi>
        </config>
    """,
    "testini.ini": """
        first=blockless
        [block1]
        value=13
        [block2]
        apple=pears
        orange=stairs
    """,
    "java/default.properties": """
        magic=42
    """,
    "nested.properties": """
        FooDS.type=composite
        FooDS.url=jdbc:mysql://127.0.0.1/tmp
        FooDS.user=sa
        plain=value
    """,
    "nested-datasource/com/foo.properties": """
        FooDS.type=composite
        FooDS.driver=org.gjt.mm.mysql.Driver
        FooDS.url=jdbc:mysql://127.0.0.1/tmp
        FooDS.port=3306
        FooDS.port.type=int
        BarDS.type=javax.sql.DataSource
        BarDS.url=jdbc:mysql://127.0.0.1/bar
    """,
    "single.properties": """
        is-composite=true
        url=jdbc:hsqldb:mem:single
        user=sa
    """,
    "broken.xml": """
        <config><unclosed></config>
    """,
    "priority.xml": """
        <doc><winner>xml</winner></doc>
    """,
    "priority.properties": """
        doc.winner=properties
    """,
}


def write_tree(root):
    for rel, body in FILES.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(body).lstrip("\n"), encoding="utf-8")
    (root / "empty").mkdir()
    return root


@pytest.fixture
def tree(tmp_path):
    return write_tree(tmp_path / "config")


@pytest.fixture
def ns(tree):
    namespace = Namespace({"root": str(tree)})
    yield namespace
    namespace.close()


@pytest.fixture
def bundle(tmp_path):
    """A search path holding a directory tree and a zip archive."""
    write_tree(tmp_path / "classes")
    archive = tmp_path / "extra.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("conf/app.properties", "key=from-zip\n")
    return [str(tmp_path / "classes"), str(archive)]
