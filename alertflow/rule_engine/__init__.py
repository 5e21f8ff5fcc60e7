# -*- coding: utf-8 -*-
"""
AlertFlow Rule Engine

Resolves vendor rule-engine XML into delivery-flow rows.

Components (leaf-first):
    - view_index: Named view/filter arena and path predicates
    - rule_classifier: CREATE / SEND / ESCALATE role derivation
    - scope_resolver: Alert-type, facility and unit scope plus CREATE coverage
    - chain_builder: Escalation chains of up to five (delay, recipient) steps
    - materializer: Flow rows and unit rows from chains
    - xml_loader: XML reading and pipeline orchestration

Example:
    >>> from alertflow.rule_engine import XmlLoader
    >>> result = XmlLoader().load("engage.xml")

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from alertflow.rule_engine.chain_builder import (
    ChainBuilder,
    ChainStep,
    EscalationChain,
    format_recipient,
    map_component,
)
from alertflow.rule_engine.materializer import FlowRowMaterializer, config_group_name
from alertflow.rule_engine.rule_classifier import RuleClassifier
from alertflow.rule_engine.scope_resolver import ScopeResolver
from alertflow.rule_engine.view_index import ViewIndex
from alertflow.rule_engine.xml_loader import XmlLoader, XmlLoadResult, parse_document

__all__ = [
    "ViewIndex",
    "RuleClassifier",
    "ScopeResolver",
    "ChainBuilder",
    "ChainStep",
    "EscalationChain",
    "format_recipient",
    "map_component",
    "FlowRowMaterializer",
    "config_group_name",
    "XmlLoader",
    "XmlLoadResult",
    "parse_document",
]
