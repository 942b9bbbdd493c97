"""Pydantic schemas for mu-delta-notifier payloads.

A delta notification is a JSON list of changesets::

    [
      {
        "inserts": [
          {
            "subject":   {"type": "uri", "value": "http://example.com/files/1"},
            "predicate": {"type": "uri", "value": "http://www.w3.org/1999/02/22-rdf-syntax-ns#type"},
            "object":    {"type": "uri", "value": "http://www.semanticdesktop.org/ontologies/2007/03/22/nfo#FileDataObject"}
          }
        ],
        "deletes": []
      }
    ]
"""

from __future__ import annotations

from typing import Literal as TypingLiteral

from pydantic import BaseModel, ConfigDict, Field, RootModel
from rdflib import BNode, Literal, URIRef
from rdflib.term import Node


class DeltaTerm(BaseModel):
    """One RDF term in SPARQL JSON results notation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: TypingLiteral["uri", "literal", "typed-literal", "bnode"]
    value: str
    datatype: str | None = None
    lang: str | None = Field(default=None, alias="xml:lang")

    def to_rdflib(self) -> Node:
        if self.type == "uri":
            return URIRef(self.value)
        if self.type == "bnode":
            return BNode(self.value)
        if self.lang:
            return Literal(self.value, lang=self.lang)
        if self.datatype:
            return Literal(self.value, datatype=URIRef(self.datatype))
        return Literal(self.value)


class DeltaTriple(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subject: DeltaTerm
    predicate: DeltaTerm
    object: DeltaTerm

    def to_rdflib(self) -> tuple[Node, Node, Node]:
        return (
            self.subject.to_rdflib(),
            self.predicate.to_rdflib(),
            self.object.to_rdflib(),
        )


class Changeset(BaseModel):
    model_config = ConfigDict(extra="ignore")

    inserts: list[DeltaTriple] = Field(default_factory=list)
    deletes: list[DeltaTriple] = Field(default_factory=list)


class ChangeDelta(RootModel[list[Changeset]]):
    """The full notification body: an ordered list of changesets."""

    @property
    def inserts(self) -> list[DeltaTriple]:
        return [triple for changeset in self.root for triple in changeset.inserts]

    @property
    def deletes(self) -> list[DeltaTriple]:
        return [triple for changeset in self.root for triple in changeset.deletes]
