"""
Transaction ingestion components for the risk scoring pipeline.
"""

from .transaction_producer import TransactionProducer, TransactionProducerConfig

__all__ = ["TransactionProducer", "TransactionProducerConfig"]
