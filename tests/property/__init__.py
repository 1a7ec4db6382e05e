"""Property-based tests using Hypothesis.

These tests use generative testing to explore edge cases:
- Pending counter under arbitrary increment/decrement orderings
- Invalidation batching of arbitrary request bursts
- Rollback of failed mutations over arbitrary cached rows

To run property tests:
    pytest tests/property/ -v --hypothesis-show-statistics

Requires:
    hypothesis>=6.100.0
"""
