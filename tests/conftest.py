"""
Test Configuration and Fixtures
"""
import io
import struct
from types import SimpleNamespace

import docx
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
import pytest

from docuchat import create_app, db
from docuchat.models import Document, User
from docuchat.services import llm_service, word_service

LOREM = "lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod"


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing"""
    app = create_app('testing')
    app.config['UPLOAD_DIR'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def upload_dir(app):
    return app.config['UPLOAD_DIR']


def _create_user(email, password):
    user = User(email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def test_user(app):
    return _create_user('test@example.com', 'testpassword123')


@pytest.fixture(scope='function')
def other_user(app):
    return _create_user('other@example.com', 'otherpassword123')


@pytest.fixture(scope='function')
def authenticated_client(client, test_user):
    """Create authenticated test client"""
    response = client.post('/api/auth/login', json={
        'email': 'test@example.com',
        'password': 'testpassword123',
    })
    assert response.status_code == 200
    return client


def _add_document(user, text):
    doc = Document(
        user_id=user.id,
        original_filename='notes.pdf',
        mime_type='application/pdf',
        size_bytes=1234,
        storage_path='/uploads/1-1-notes.pdf',
        text_content=text,
    )
    db.session.add(doc)
    db.session.commit()
    return doc


@pytest.fixture(scope='function')
def test_document(test_user):
    return _add_document(test_user, 'The warranty period is two years from the date of purchase.')


@pytest.fixture(scope='function')
def other_document(other_user):
    return _add_document(other_user, 'Somebody else owns this text.')


# ============ File builders ============

def build_pdf(lines, extra_objects=()):
    """Minimal single-page PDF with a Helvetica text layer."""
    content = ["BT", "/F1 10 Tf", "14 TL", "40 780 Td"]
    for line in lines:
        content.append(f"({line}) Tj T*")
    content.append("ET")
    stream = "\n".join(content).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
    ]
    objects.extend(extra_objects)

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(out.tell())
        out.write(b"%d 0 obj\n" % number + body + b"\nendobj\n")
    xref = out.tell()
    out.write(b"xref\n0 %d\n" % (len(objects) + 1))
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(b"%010d 00000 n \n" % offset)
    out.write(b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref))
    return out.getvalue()


IMAGE_OBJECT = (
    b"<< /Type /XObject /Subtype /Image /Width 1 /Height 1 /ColorSpace /DeviceGray "
    b"/BitsPerComponent 8 /Length 1 >>\nstream\n\x00\nendstream"
)


@pytest.fixture
def text_pdf():
    """About 5000 characters of real text, no images."""
    return build_pdf([f"Line {i:02d} {LOREM}" for i in range(60)])


@pytest.fixture
def short_pdf():
    """About 500 characters: looks like a scan with trace text."""
    return build_pdf([f"Line {i:02d} {LOREM}" for i in range(6)])


@pytest.fixture
def image_pdf():
    return build_pdf([f"Line {i:02d} {LOREM}" for i in range(60)], extra_objects=[IMAGE_OBJECT])


def build_docx(paragraphs):
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    out = io.BytesIO()
    document.save(out)
    return out.getvalue()


def build_docx_with_bad_grid_span():
    """A DOCX that opens cleanly but whose table cell has a non-numeric gridSpan."""
    document = docx.Document()
    document.add_paragraph("Before the table")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "A"
    table.rows[0].cells[1].text = "B"
    span = OxmlElement('w:gridSpan')
    span.set(qn('w:val'), 'abc')
    table.rows[0].cells[0]._tc.get_or_add_tcPr().append(span)
    out = io.BytesIO()
    document.save(out)
    return out.getvalue()


# ============ Word 97-2003 ============

def word_streams(pieces, flags=0x0200):
    """Build WordDocument/table streams holding the given (text, unicode) pieces."""
    word = bytearray(2048)
    struct.pack_into("<H", word, 0, word_service.FIB_IDENT)
    struct.pack_into("<H", word, word_service.FIB_FLAGS_OFFSET, flags)

    cps = [0]
    pcds = b""
    offset = 1024
    for text, unicode in pieces:
        if unicode:
            data = text.encode("utf-16-le")
            fc = offset
        else:
            data = text.encode("cp1252")
            fc = (offset * 2) | word_service.PIECE_COMPRESSED
        word[offset:offset + len(data)] = data
        offset += len(data)
        cps.append(cps[-1] + len(text))
        pcds += struct.pack("<HIH", 0, fc, 0)

    plc = struct.pack(f"<{len(cps)}I", *cps) + pcds
    clx = b"\x01" + struct.pack("<h", 2) + b"\x00\x00" + b"\x02" + struct.pack("<I", len(plc)) + plc
    table = b"\x00" * 8 + clx
    struct.pack_into("<II", word, word_service.FIB_FC_CLX_OFFSET, 8, len(clx))
    return bytes(word), table


SECTOR = 512
FREESECT = 0xFFFFFFFF
ENDOFCHAIN = 0xFFFFFFFE
FATSECT = 0xFFFFFFFD
NOSTREAM = 0xFFFFFFFF


def _directory_entry(name=None, kind=0, child=NOSTREAM, right=NOSTREAM, start=ENDOFCHAIN, size=0):
    entry = bytearray(128)
    if name:
        encoded = (name + "\x00").encode("utf-16-le")
        entry[:len(encoded)] = encoded
        struct.pack_into("<HBB", entry, 64, len(encoded), kind, 1)
    struct.pack_into("<III", entry, 68, NOSTREAM, right, child)
    struct.pack_into("<II", entry, 116, start, size)
    return bytes(entry)


def build_compound_file(streams):
    """Minimal CFB v3 container; streams are padded past the mini-stream cutoff."""
    names = sorted(streams, key=lambda n: (len(n), n.upper()))
    assert len(names) <= 3

    fat = [FATSECT, ENDOFCHAIN]
    body = b""
    entries = [_directory_entry("Root Entry", kind=5, child=1)]
    for i, name in enumerate(names):
        data = streams[name]
        data = data.ljust(max(4096, -(-len(data) // SECTOR) * SECTOR), b"\x00")
        start = len(fat)
        count = len(data) // SECTOR
        fat.extend(range(start + 1, start + count))
        fat.append(ENDOFCHAIN)
        right = i + 2 if i + 1 < len(names) else NOSTREAM
        entries.append(_directory_entry(name, kind=2, right=right, start=start, size=len(data)))
        body += data
    entries += [_directory_entry()] * (4 - len(entries))
    fat += [FREESECT] * (SECTOR // 4 - len(fat))

    header = struct.pack(
        "<8s16sHHHHHHIIIIIIIIII",
        b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", b"\x00" * 16,
        0x3E, 3, 0xFFFE, 9, 6, 0,
        0, 0, 1, 1, 0, 4096, ENDOFCHAIN, 0, ENDOFCHAIN, 0,
    )
    header += struct.pack("<109I", 0, *([FREESECT] * 108))
    return header + struct.pack(f"<{len(fat)}I", *fat) + b"".join(entries) + body


def build_doc(pieces):
    """Word 97-2003 file whose text is the given (text, unicode) pieces."""
    word, table = word_streams(pieces)
    return build_compound_file({"WordDocument": word, "1Table": table})


# ============ Upstream LLM ============

class FakeCompletions:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def fake_llm(monkeypatch):
    """Replace the OpenAI client; returns a function that installs a fake."""
    def install(result=None, error=None):
        completions = FakeCompletions(result=result, error=error)
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(llm_service, 'get_client', lambda settings: client)
        return completions
    return install
