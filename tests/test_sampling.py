"""
streamgen :: Test Sampling

Tests for:
  - ArgMax / All / TopK / TopP / TopKThenTopP draws
  - seed reproducibility
  - repetition penalty

INL - 2025
"""

import torch
import pytest

from streamgen.core.sampling import (
    ArgMax, All, TopK, TopP, TopKThenTopP,
    LogitsSampler, apply_repeat_penalty,
)


# =========================================================================
# Sampler
# =========================================================================

class TestLogitsSampler:
    def test_argmax(self):
        sampler = LogitsSampler(0, ArgMax())
        assert sampler.sample(torch.tensor([0.1, 0.3, 0.9, 0.2])) == 2

    def test_argmax_tie_picks_last(self):
        sampler = LogitsSampler(0, ArgMax())
        assert sampler.sample(torch.tensor([0.5, 2.0, 1.0, 2.0, 0.0])) == 3
        assert sampler.sample(torch.zeros(4)) == 3

    def test_output_is_integer(self):
        sampler = LogitsSampler(0, All(temperature=1.0))
        token = sampler.sample(torch.randn(100))
        assert isinstance(token, int)
        assert 0 <= token < 100

    def test_low_temperature_is_near_greedy(self):
        sampler = LogitsSampler(0, All(temperature=0.01))
        logits = torch.tensor([1.0, 2.0, 3.0])
        assert all(sampler.sample(logits) == 2 for _ in range(20))

    def test_top_k_restricts_candidates(self):
        sampler = LogitsSampler(1, TopK(k=2, temperature=1.0))
        logits = torch.tensor([5.0, 4.9, -1.0, -1.0, -1.0])
        drawn = {sampler.sample(logits) for _ in range(200)}
        assert drawn <= {0, 1}

    def test_top_k_larger_than_vocab(self):
        sampler = LogitsSampler(1, TopK(k=50, temperature=1.0))
        token = sampler.sample(torch.zeros(5))
        assert 0 <= token < 5

    def test_top_p_keeps_nucleus(self):
        # probs ~ [0.6, 0.3, 0.1]: p=0.5 keeps only the first token
        logits = torch.log(torch.tensor([0.6, 0.3, 0.1]))
        sampler = LogitsSampler(3, TopP(p=0.5, temperature=1.0))
        assert {sampler.sample(logits) for _ in range(100)} == {0}

    def test_top_p_crossing_token_is_kept(self):
        # mass before token 1 is 0.6 < 0.8, so it stays; token 2 starts at 0.9
        logits = torch.log(torch.tensor([0.6, 0.3, 0.1]))
        sampler = LogitsSampler(3, TopP(p=0.8, temperature=1.0))
        drawn = {sampler.sample(logits) for _ in range(300)}
        assert drawn <= {0, 1}
        assert 1 in drawn

    @pytest.mark.parametrize("p", [0.0, 1.0, 1.5])
    def test_top_p_out_of_range_is_plain_multinomial(self, p):
        sampler = LogitsSampler(0, TopP(p=p, temperature=1.0))
        drawn = {sampler.sample(torch.zeros(4)) for _ in range(300)}
        assert drawn == {0, 1, 2, 3}

    def test_top_k_then_top_p(self):
        logits = torch.log(torch.tensor([0.5, 0.3, 0.15, 0.05]))
        sampler = LogitsSampler(7, TopKThenTopP(k=3, p=0.4, temperature=1.0))
        assert {sampler.sample(logits) for _ in range(100)} == {0}

    def test_top_k_then_top_p_large_p_uses_top_k(self):
        logits = torch.log(torch.tensor([0.4, 0.3, 0.2, 0.1]))
        sampler = LogitsSampler(7, TopKThenTopP(k=2, p=0.99, temperature=1.0))
        drawn = {sampler.sample(logits) for _ in range(300)}
        assert drawn == {0, 1}

    def test_same_seed_same_tokens(self):
        torch.manual_seed(0)
        logits_seq = [torch.randn(50) for _ in range(30)]
        strategy = TopKThenTopP(k=20, p=0.9, temperature=0.8)
        a = LogitsSampler(1234, strategy)
        b = LogitsSampler(1234, strategy)
        assert [a.sample(x) for x in logits_seq] == [b.sample(x) for x in logits_seq]

    def test_sampler_ignores_global_rng(self):
        logits_seq = [torch.zeros(50) for _ in range(10)]
        a = LogitsSampler(9, All(temperature=1.0))
        torch.manual_seed(1)
        first = [a.sample(x) for x in logits_seq]
        b = LogitsSampler(9, All(temperature=1.0))
        torch.manual_seed(2)
        second = [b.sample(x) for x in logits_seq]
        assert first == second

    def test_accepts_half_precision(self):
        sampler = LogitsSampler(0, ArgMax())
        assert sampler.sample(torch.tensor([0.0, 1.0, 0.5], dtype=torch.float16)) == 1


# =========================================================================
# Repetition penalty
# =========================================================================

class TestRepeatPenalty:
    def test_positive_scores_divided(self):
        logits = torch.tensor([2.0, 4.0, 6.0])
        out = apply_repeat_penalty(logits, 2.0, [1])
        assert out.tolist() == [2.0, 2.0, 6.0]

    def test_negative_scores_multiplied(self):
        logits = torch.tensor([-2.0, 1.0])
        out = apply_repeat_penalty(logits, 2.0, [0])
        assert out.tolist() == [-4.0, 1.0]

    def test_each_token_penalized_once(self):
        logits = torch.tensor([8.0, 1.0])
        out = apply_repeat_penalty(logits, 2.0, [0, 0, 0])
        assert out[0].item() == 4.0

    def test_input_not_modified(self):
        logits = torch.tensor([8.0, 1.0])
        apply_repeat_penalty(logits, 2.0, [0])
        assert logits.tolist() == [8.0, 1.0]

    def test_out_of_vocab_ignored(self):
        logits = torch.tensor([8.0, 1.0])
        out = apply_repeat_penalty(logits, 2.0, [5, -1])
        assert torch.equal(out, logits)

    def test_penalty_changes_argmax(self):
        logits = torch.zeros(10)
        logits[5] = 10.0
        logits[3] = 6.0
        out = apply_repeat_penalty(logits, 2.0, [5])
        assert LogitsSampler(0, ArgMax()).sample(out) == 3
