"""Persisted exact-match index on top of DuckDB.

Layout of an index directory::

    <location>/meta.json       manifest: format version + field schema
    <location>/index.duckdb    documents + postings tables

``meta.json`` is written last when an index is created; its presence is what
distinguishes "open existing" from "create new". An existing index is always
opened with the schema recorded in its manifest.

Storage model
-------------
- ``documents``: one row per document, one VARCHAR column per schema field
  holding the stored (case preserved) value, plus the ``__doc_id`` column.
  Columns are named by position (``f0``, ``f1``, ...) and the manifest maps
  field names to them: DuckDB identifiers ignore case, field names do not.
- ``postings``: ``(field, term, position, doc_id)`` for every token emitted by
  the tokenizer of an indexed field.

Concurrency
-----------
One :class:`IndexWriter` per index at a time. ``add_documents`` may be called
from any thread (calls are serialized); ``commit`` only from the thread that
created the writer. An :class:`IndexReader` serves a point-in-time snapshot:
documents committed after it was acquired stay invisible until
:meth:`IndexReader.refresh`.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import duckdb
import pyarrow as pa

from contracts.documents import Document
from contracts.errors import IndexStorageError, QueryError
from contracts.interfaces import TokenizerProtocol
from contracts.schema import IndexSchema
from pipeline.query import PhraseQuery, Query, parse_query
from pipeline.tokenizer import TokenizerRegistry, default_registry
from version import ENGINE_NAME, ENGINE_VERSION, INDEX_FORMAT_VERSION

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "meta.json"
DATABASE_FILENAME = "index.duckdb"

DOCUMENTS_TABLE = "documents"
POSTINGS_TABLE = "postings"
DOC_ID_COLUMN = "__doc_id"

POSTINGS_ARROW_SCHEMA = pa.schema(
    [
        pa.field("field", pa.string(), nullable=False),
        pa.field("term", pa.string(), nullable=False),
        pa.field("position", pa.int32(), nullable=False),
        pa.field("doc_id", pa.int64(), nullable=False),
    ]
)

NamedDocument = dict[str, list[str]]


def _qident(name: str) -> str:
    """Quote an identifier for DuckDB SQL (double quotes)."""
    return '"' + name.replace('"', '""') + '"'


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


# -------------------------
# Manifest
# -------------------------


def storage_columns(schema: IndexSchema) -> dict[str, str]:
    """Positional storage column of every field of *schema*."""
    return {name: f"f{i}" for i, name in enumerate(schema.field_names)}


@dataclass(frozen=True)
class IndexManifest:
    schema: IndexSchema
    columns: dict[str, str] = dataclass_field(default_factory=dict)
    format_version: int = INDEX_FORMAT_VERSION
    engine_name: str = ENGINE_NAME
    engine_version: str = ENGINE_VERSION
    database: str = DATABASE_FILENAME
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.columns:
            object.__setattr__(self, "columns", storage_columns(self.schema))
        if set(self.columns) != set(self.schema.field_names):
            raise IndexStorageError("Manifest columns do not cover the schema fields")
        if len({c.lower() for c in self.columns.values()}) != len(self.columns):
            raise IndexStorageError("Manifest maps two fields to the same column")

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": self.format_version,
            "engine_name": self.engine_name,
            "engine_version": self.engine_version,
            "database": self.database,
            "created_at": self.created_at or _utc_now_iso(),
            "schema": self.schema.to_dict(),
            "columns": dict(self.columns),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> IndexManifest:
        try:
            format_version = int(payload.get("format_version") or 0)
        except (TypeError, ValueError) as exc:
            raise IndexStorageError(f"Invalid format_version in manifest: {payload.get('format_version')!r}") from exc
        if format_version != INDEX_FORMAT_VERSION:
            raise IndexStorageError(
                f"Unsupported index format {format_version} (expected {INDEX_FORMAT_VERSION})"
            )
        columns = payload.get("columns")
        if not isinstance(columns, dict) or not columns:
            raise IndexStorageError("Manifest has no column mapping")
        return cls(
            schema=IndexSchema.from_dict(payload.get("schema") or []),
            columns={str(k): str(v) for k, v in columns.items()},
            format_version=format_version,
            engine_name=str(payload.get("engine_name") or ""),
            engine_version=str(payload.get("engine_version") or ""),
            database=str(payload.get("database") or DATABASE_FILENAME),
            created_at=str(payload.get("created_at") or ""),
        )


def manifest_path(location: str | Path) -> Path:
    return Path(location) / MANIFEST_FILENAME


def write_manifest(location: str | Path, manifest: IndexManifest) -> Path:
    """Write *manifest* into *location* (atomically best-effort)."""
    path = manifest_path(location)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)
    return path


def load_manifest(location: str | Path) -> IndexManifest:
    path = manifest_path(location)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise IndexStorageError(f"Could not read index manifest {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise IndexStorageError(f"Index manifest {path} is not a JSON object")
    return IndexManifest.from_dict(payload)


# -------------------------
# Index
# -------------------------


class Index:
    """An opened index directory.

    Use :meth:`create`, :meth:`open` or :meth:`open_or_create`; the instance
    owns the DuckDB database and hands out writer/reader connections.
    """

    def __init__(
        self,
        location: Path,
        manifest: IndexManifest,
        con: duckdb.DuckDBPyConnection,
        *,
        tokenizers: TokenizerRegistry,
        pre_existing: bool,
    ) -> None:
        self.location = location
        self.manifest = manifest
        self.pre_existing = pre_existing
        self._con = con
        self._tokenizers = tokenizers
        self._lock = threading.Lock()
        self._writer: IndexWriter | None = None
        self._readers: list[IndexReader] = []
        self._closed = False

    # -- construction --------------------------------------------------

    @staticmethod
    def exists(location: str | Path) -> bool:
        return manifest_path(location).is_file()

    @classmethod
    def create(
        cls,
        location: str | Path,
        schema: IndexSchema,
        *,
        tokenizers: TokenizerRegistry | None = None,
    ) -> Index:
        loc = Path(location)
        if cls.exists(loc):
            raise IndexStorageError(f"An index already exists in {loc}")
        if loc.exists() and not loc.is_dir():
            raise IndexStorageError(f"{loc} is not a directory")
        registry = tokenizers or default_registry()
        _check_tokenizers(schema, registry)

        manifest = IndexManifest(schema=schema, created_at=_utc_now_iso())
        try:
            loc.mkdir(parents=True, exist_ok=True)
            con = duckdb.connect(str(loc / manifest.database), read_only=False)
        except (OSError, duckdb.Error) as exc:
            raise IndexStorageError(f"Error creating index in {loc}: {exc}") from exc

        try:
            _create_tables(con, schema, manifest.columns)
            write_manifest(loc, manifest)
        except (OSError, duckdb.Error) as exc:
            con.close()
            raise IndexStorageError(f"Error creating index in {loc}: {exc}") from exc

        logger.info("Created index in %s with %d fields", loc, len(schema))
        return cls(loc, manifest, con, tokenizers=registry, pre_existing=False)

    @classmethod
    def open(cls, location: str | Path, *, tokenizers: TokenizerRegistry | None = None) -> Index:
        loc = Path(location)
        if not cls.exists(loc):
            raise IndexStorageError(f"No index found in {loc}")
        manifest = load_manifest(loc)
        registry = tokenizers or default_registry()
        _check_tokenizers(manifest.schema, registry)
        try:
            con = duckdb.connect(str(loc / manifest.database), read_only=False)
        except duckdb.Error as exc:
            raise IndexStorageError(f"Error opening index in {loc}: {exc}") from exc
        logger.info("Opened existing index in %s", loc)
        return cls(loc, manifest, con, tokenizers=registry, pre_existing=True)

    @classmethod
    def open_or_create(
        cls,
        location: str | Path,
        schema: IndexSchema | Callable[[], IndexSchema],
        *,
        tokenizers: TokenizerRegistry | None = None,
    ) -> Index:
        """Open the index in *location*, or create it.

        *schema* may be a callable, in which case it is only invoked when a new
        index has to be created. When an index exists and a concrete schema is
        given, both must match.
        """
        if cls.exists(location):
            index = cls.open(location, tokenizers=tokenizers)
            if isinstance(schema, IndexSchema) and schema != index.schema:
                index.close()
                raise IndexStorageError(
                    f"Schema of the index in {location} does not match the requested schema"
                )
            return index
        resolved = schema() if callable(schema) else schema
        return cls.create(location, resolved, tokenizers=tokenizers)

    # -- accessors -----------------------------------------------------

    @property
    def schema(self) -> IndexSchema:
        return self.manifest.schema

    @property
    def tokenizers(self) -> TokenizerRegistry:
        return self._tokenizers

    def tokenizer_for(self, field: str) -> TokenizerProtocol:
        spec = self.schema.get(field)
        if spec is None:
            raise QueryError(f"Field {field!r} does not exist in the index schema")
        if not spec.indexed or not spec.tokenizer:
            raise QueryError(f"Field {field!r} is stored but not indexed")
        return self._tokenizers.get(spec.tokenizer)

    # -- handles -------------------------------------------------------

    def writer(self, memory_budget: int, num_threads: int = 1) -> IndexWriter:
        """Return the single writer of this index.

        Raises:
            IndexStorageError: if another writer is still open.
        """
        with self._lock:
            self._ensure_open()
            if self._writer is not None:
                raise IndexStorageError(f"A writer is already open on {self.location}")
            try:
                self._con.execute(f"SET threads = {max(1, int(num_threads))}")
                con = self._con.cursor()
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error creating index writer: {exc}") from exc
            self._writer = IndexWriter(self, con, memory_budget=memory_budget, num_threads=num_threads)
            return self._writer

    def reader(self) -> IndexReader:
        with self._lock:
            self._ensure_open()
            try:
                con = self._con.cursor()
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error creating index reader: {exc}") from exc
            reader = IndexReader(self, con)
            self._readers.append(reader)
            return reader

    def _release_writer(self, writer: IndexWriter) -> None:
        with self._lock:
            if self._writer is writer:
                self._writer = None

    def _release_reader(self, reader: IndexReader) -> None:
        with self._lock:
            if reader in self._readers:
                self._readers.remove(reader)

    def _ensure_open(self) -> None:
        if self._closed:
            raise IndexStorageError(f"Index {self.location} is closed")

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            writer = self._writer
            readers = list(self._readers)
        if writer is not None:
            writer.close()
        for reader in readers:
            reader.close()
        with self._lock:
            self._closed = True
            self._con.close()

    def __enter__(self) -> Index:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()


def _check_tokenizers(schema: IndexSchema, registry: TokenizerRegistry) -> None:
    missing = sorted(name for name in schema.tokenizer_names() if name not in registry)
    if missing:
        available = ", ".join(registry.names()) or "none"
        raise IndexStorageError(f"Tokenizers not registered: {', '.join(missing)} (available: {available})")


def _create_tables(
    con: duckdb.DuckDBPyConnection, schema: IndexSchema, columns: dict[str, str]
) -> None:
    ddl = [f"{_qident(DOC_ID_COLUMN)} BIGINT NOT NULL"]
    ddl.extend(f"{_qident(columns[name])} VARCHAR" for name in schema.field_names)
    con.execute(f"CREATE OR REPLACE TABLE {DOCUMENTS_TABLE} ({', '.join(ddl)})")
    con.execute(
        f"CREATE OR REPLACE TABLE {POSTINGS_TABLE} ("
        "field VARCHAR NOT NULL, term VARCHAR NOT NULL, "
        "position INTEGER NOT NULL, doc_id BIGINT NOT NULL)"
    )


# -------------------------
# Writer
# -------------------------


class IndexWriter:
    """Single writer handle of an :class:`Index`.

    ``memory_budget`` is the total arena shared by ``num_threads`` producers;
    :attr:`arena_per_thread` is what each producer may buffer before handing a
    batch to :meth:`add_documents`.
    """

    def __init__(
        self,
        index: Index,
        con: duckdb.DuckDBPyConnection,
        *,
        memory_budget: int,
        num_threads: int,
    ) -> None:
        if memory_budget <= 0:
            raise IndexStorageError("memory_budget must be > 0")
        self._index = index
        self._con = con
        self._lock = threading.Lock()
        self._owner = threading.get_ident()
        self._in_txn = False
        self._uncommitted = 0
        self._closed = False
        self.memory_budget = int(memory_budget)
        self.num_threads = max(1, int(num_threads))

        self._schema = index.schema
        self._columns = index.manifest.columns
        self._arrow_schema = self._schema.to_arrow(id_column=DOC_ID_COLUMN, columns=self._columns)
        self._column_sql = ", ".join(_qident(n) for n in self._arrow_schema.names)
        self._tokenizers = {
            spec.name: index.tokenizers.get(spec.tokenizer)
            for spec in self._schema.indexed_fields
            if spec.tokenizer
        }
        try:
            row = con.execute(
                f"SELECT coalesce(max({_qident(DOC_ID_COLUMN)}) + 1, 0) FROM {DOCUMENTS_TABLE}"
            ).fetchone()
        except duckdb.Error as exc:
            raise IndexStorageError(f"Error reading index state: {exc}") from exc
        self._next_doc_id = int(row[0]) if row else 0

    @property
    def arena_per_thread(self) -> int:
        return max(1, self.memory_budget // self.num_threads)

    @property
    def schema(self) -> IndexSchema:
        return self._schema

    @property
    def pending_documents(self) -> int:
        with self._lock:
            return self._uncommitted

    def add_document(self, document: Document) -> int:
        return self.add_documents([document])

    def add_documents(self, documents: Sequence[Document]) -> int:
        """Append a batch of documents to the pending (uncommitted) segment.

        Tokenization happens in the calling thread; only the insert itself is
        serialized. Returns the number of documents added.
        """
        if not documents:
            return 0

        rows: list[dict[str, Any]] = []
        postings_field: list[str] = []
        postings_term: list[str] = []
        postings_pos: list[int] = []
        postings_rel: list[int] = []
        for rel, doc in enumerate(documents):
            row: dict[str, Any] = {}
            for name, value in doc.items():
                if name not in self._schema:
                    raise IndexStorageError(f"Field {name!r} is not part of the index schema")
                row[self._columns[name]] = value
                tokenizer = self._tokenizers.get(name)
                if tokenizer is None:
                    continue
                for token in tokenizer.tokenize(value):
                    postings_field.append(name)
                    postings_term.append(token.text)
                    postings_pos.append(token.position)
                    postings_rel.append(rel)
            rows.append(row)

        with self._lock:
            self._ensure_open()
            base = self._next_doc_id
            for rel, row in enumerate(rows):
                row[DOC_ID_COLUMN] = base + rel
            docs_table = pa.Table.from_pylist(rows, schema=self._arrow_schema)
            postings_table = pa.table(
                {
                    "field": postings_field,
                    "term": postings_term,
                    "position": postings_pos,
                    "doc_id": [base + rel for rel in postings_rel],
                },
                schema=POSTINGS_ARROW_SCHEMA,
            )
            try:
                self._begin()
                self._insert(DOCUMENTS_TABLE, self._column_sql, docs_table)
                if postings_table.num_rows:
                    self._insert(POSTINGS_TABLE, "field, term, position, doc_id", postings_table)
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error adding documents: {exc}") from exc
            self._next_doc_id = base + len(rows)
            self._uncommitted += len(rows)
        return len(rows)

    def delete_all_documents(self, *, commit: bool = False) -> None:
        with self._lock:
            self._ensure_open()
            try:
                self._begin()
                self._con.execute(f"DELETE FROM {POSTINGS_TABLE}")
                self._con.execute(f"DELETE FROM {DOCUMENTS_TABLE}")
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error deleting documents: {exc}") from exc
        logger.debug("Deleted all documents of %s", self._index.location)
        if commit:
            self.commit()

    def commit(self) -> int:
        """Make everything added so far visible to new readers.

        Returns the number of documents added since the previous commit.

        Raises:
            IndexStorageError: when called from a thread other than the owner.
        """
        if threading.get_ident() != self._owner:
            raise IndexStorageError("Only the thread that opened the writer may commit")
        with self._lock:
            self._ensure_open()
            committed = self._uncommitted
            if self._in_txn:
                try:
                    self._con.commit()
                except duckdb.Error as exc:
                    raise IndexStorageError(f"Error committing index: {exc}") from exc
                self._in_txn = False
            self._uncommitted = 0
        logger.debug("Committed %d documents to %s", committed, self._index.location)
        return committed

    def rollback(self) -> None:
        with self._lock:
            self._ensure_open()
            self._rollback_locked()

    def close(self) -> None:
        """Discard uncommitted work and release the writer."""
        with self._lock:
            if self._closed:
                return
            self._rollback_locked()
            self._closed = True
            self._con.close()
        self._index._release_writer(self)

    def __enter__(self) -> IndexWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    # -- internals ---------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise IndexStorageError("Index writer is closed")

    def _begin(self) -> None:
        if not self._in_txn:
            self._con.begin()
            self._in_txn = True

    def _rollback_locked(self) -> None:
        if self._in_txn:
            try:
                self._con.rollback()
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error rolling back index writer: {exc}") from exc
            self._in_txn = False
        if self._uncommitted:
            logger.warning("Discarded %d uncommitted documents", self._uncommitted)
        self._uncommitted = 0
        row = self._con.execute(
            f"SELECT coalesce(max({_qident(DOC_ID_COLUMN)}) + 1, 0) FROM {DOCUMENTS_TABLE}"
        ).fetchone()
        self._next_doc_id = int(row[0]) if row else 0

    def _insert(self, table: str, columns: str, data: pa.Table) -> None:
        view = f"_vanilla_{table}_batch"
        self._con.register(view, data)
        try:
            self._con.execute(f"INSERT INTO {table} ({columns}) SELECT {columns} FROM {view}")
        finally:
            self._con.unregister(view)


# -------------------------
# Reader
# -------------------------


@dataclass(frozen=True)
class SearchHit:
    score: float
    doc_id: int


class IndexReader:
    """Point-in-time view of an index.

    All calls are serialized so that a single reader can back a threaded HTTP
    server.
    """

    def __init__(self, index: Index, con: duckdb.DuckDBPyConnection) -> None:
        self._index = index
        self._con = con
        self._lock = threading.RLock()
        self._closed = False
        self._num_docs = 0
        with self._lock:
            self._acquire_snapshot()

    @property
    def schema(self) -> IndexSchema:
        return self._index.schema

    def _acquire_snapshot(self) -> None:
        # The first statement pins the snapshot of the transaction.
        try:
            self._con.begin()
            row = self._con.execute(f"SELECT count(*) FROM {DOCUMENTS_TABLE}").fetchone()
        except duckdb.Error as exc:
            raise IndexStorageError(f"Error acquiring index snapshot: {exc}") from exc
        self._num_docs = int(row[0]) if row else 0

    def refresh(self) -> None:
        """Move the snapshot forward to the latest commit."""
        with self._lock:
            self._ensure_open()
            try:
                self._con.rollback()
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error releasing index snapshot: {exc}") from exc
            self._acquire_snapshot()

    def num_docs(self) -> int:
        with self._lock:
            return self._num_docs

    def search(self, query: Query | str, limit: int) -> list[SearchHit]:
        """Return up to *limit* hits, ordered by document id.

        Every hit of an exact-match query is equally relevant, so all scores
        are 1.0 and the order is insertion order.
        """
        if isinstance(query, str):
            query = parse_query(query)
        if limit <= 0:
            return []

        parts: list[str] = []
        params: list[Any] = []
        for clause in query.clauses():
            sql, clause_params = self._clause_sql(clause)
            if sql is None:
                return []
            parts.append(sql)
            params.extend(clause_params)

        sql = (
            f"SELECT DISTINCT doc_id FROM ({' INTERSECT '.join(parts)}) AS hits "
            f"ORDER BY doc_id LIMIT {int(limit)}"
        )
        with self._lock:
            self._ensure_open()
            try:
                rows = self._con.execute(sql, params).fetchall()
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error executing query {query}: {exc}") from exc
        return [SearchHit(score=1.0, doc_id=int(r[0])) for r in rows]

    def doc(self, doc_id: int) -> NamedDocument:
        docs = self.docs([doc_id])
        if not docs:
            raise IndexStorageError(f"Document {doc_id} does not exist")
        return docs[0]

    def docs(self, doc_ids: Sequence[int]) -> list[NamedDocument]:
        """Stored fields of *doc_ids*, in the given order (missing ids skipped)."""
        if not doc_ids:
            return []
        sql = (
            f"SELECT * FROM {DOCUMENTS_TABLE} "
            f"WHERE list_contains(?, {_qident(DOC_ID_COLUMN)})"
        )
        with self._lock:
            self._ensure_open()
            try:
                cur = self._con.execute(sql, [[int(d) for d in doc_ids]])
                columns = [d[0] for d in cur.description]
                rows = cur.fetchall()
            except duckdb.Error as exc:
                raise IndexStorageError(f"Error retrieving documents: {exc}") from exc

        field_by_column = {c: name for name, c in self._index.manifest.columns.items()}
        by_id: dict[int, NamedDocument] = {}
        for row in rows:
            named: NamedDocument = {}
            doc_id = -1
            for column, value in zip(columns, row):
                if column == DOC_ID_COLUMN:
                    doc_id = int(value)
                elif value is not None:
                    named[field_by_column[column]] = [value]
            by_id[doc_id] = named
        return [by_id[d] for d in doc_ids if d in by_id]

    def get_query_hits(self, query: Query | str, limit: int) -> list[NamedDocument]:
        """Search and return the stored fields of every hit (same snapshot)."""
        with self._lock:
            hits = self.search(query, limit)
            return self.docs([h.doc_id for h in hits])

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._con.rollback()
            except duckdb.Error:
                logger.debug("No snapshot to release on reader close")
            self._con.close()
        self._index._release_reader(self)

    def __enter__(self) -> IndexReader:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    # -- internals ---------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise IndexStorageError("Index reader is closed")

    def _clause_sql(self, clause: PhraseQuery) -> tuple[str | None, list[Any]]:
        tokenizer = self._index.tokenizer_for(clause.field)
        tokens = tokenizer.tokenize(clause.text)
        if not tokens:
            return None, []

        first = tokens[0]
        joins: list[str] = []
        where = ["p0.field = ?", "p0.term = ?"]
        params: list[Any] = [clause.field, first.text]
        for i, token in enumerate(tokens[1:], start=1):
            joins.append(
                f"JOIN {POSTINGS_TABLE} p{i} ON p{i}.doc_id = p0.doc_id "
                f"AND p{i}.field = p0.field "
                f"AND p{i}.position = p0.position + {int(token.position - first.position)}"
            )
            where.append(f"p{i}.term = ?")
            params.append(token.text)

        sql = (
            f"SELECT p0.doc_id AS doc_id FROM {POSTINGS_TABLE} p0 "
            + " ".join(joins)
            + (" " if joins else "")
            + "WHERE "
            + " AND ".join(where)
        )
        return sql, params
