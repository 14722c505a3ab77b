"""Tests for the descriptor normalizer."""

import pytest

from descriptor_engine.lib.normalizer import (
    MAX_KEY_LENGTH,
    extract_merchant_name,
    keys_similar,
    normalize,
    similar,
    strip_accents,
)

SAMPLES = [
    "PIX RECEBIDO JOAO SILVA 01/12/2024",
    "PAG*IFOOD 12/01 SAO PAULO",
    "Débito Automático SABESP 0123456789",
    "COMPRA CARTAO 1234****5678 MERCADO",
    "TED ENVIADA CPF 123.456.789-00 MARIA",
    "NETFLIX.COM",
    "",
    "   ",
    "***",
]


def test_prefix_standardization_and_date_removal():
    key = normalize("PIX RECEBIDO JOAO SILVA 01/12/2024")
    assert key == "pix_recebido_joao_silva"
    assert key.split("_")[0] == "pix"
    assert "2024" not in key


def test_longer_prefix_wins_over_short_form():
    assert normalize("DEBITO AUTOMATICO SABESP") == "debauto_sabesp"
    assert normalize("DEBITO VISA PADARIA") == "deb_visa_padaria"


def test_accented_prefix_is_standardized():
    assert normalize("Débito Automático SABESP") == "debauto_sabesp"


def test_accents_are_removed():
    assert normalize("Padaria São João") == "padaria_sao_joao"
    assert strip_accents("AÇÃO ÉPICA") == "ACAO EPICA"


def test_stopwords_and_corporate_suffixes_dropped():
    assert normalize("SUPERMERCADO DO ZE LTDA") == "supermercado_ze"


def test_labeled_codes_removed():
    assert normalize("UBER TRIP NSU 123 SAO PAULO") == "uber_trip_sao_paulo"


def test_masked_card_and_long_numbers_removed():
    assert normalize("COMPRA CARTAO 1234****5678 MERCADO") == "compra_cartao_mercado"
    assert normalize("MERCADO 987654321 CENTRO") == "mercado_centro"


def test_first_three_tokens_ordered_rest_sorted():
    assert normalize("ZETA ALFA BETA OMEGA DELTA") == "zeta_alfa_beta_delta_omega"
    assert normalize("ZETA ALFA BETA DELTA OMEGA") == "zeta_alfa_beta_delta_omega"


def test_at_most_five_tokens():
    key = normalize("ZETA ALFA BETA OMEGA DELTA GAMMA")
    assert key.split("_") == ["zeta", "alfa", "beta", "delta", "omega"]


def test_key_is_truncated():
    descriptor = " ".join(c * 30 for c in "klmno")
    key = normalize(descriptor)
    assert len(key) == MAX_KEY_LENGTH
    assert key.startswith("k" * 30)


@pytest.mark.parametrize("value", ["", "   ", None, 123, ["PIX"]])
def test_empty_or_non_string_gives_empty_key(value):
    assert normalize(value) == ""


@pytest.mark.parametrize("descriptor", SAMPLES)
def test_normalize_deterministic(descriptor):
    assert normalize(descriptor) == normalize(descriptor)


def test_similar_exact_key():
    assert similar("NETFLIX.COM", "NETFLIX COM 01/12")


def test_similar_two_shared_tokens():
    assert similar("POSTO SHELL CENTRO", "POSTO SHELL BAIRRO")


def test_not_similar_with_one_shared_token():
    assert not similar("POSTO SHELL CENTRO", "PADARIA CENTRO")


def test_similar_single_token_key():
    assert similar("IFOOD", "IFOOD RESTAURANTE CENTRO")


def test_similar_empty_is_false():
    assert not similar("", "")
    assert not similar("IFOOD", "12/01/2024")


@pytest.mark.parametrize(
    "a,b",
    [
        ("IFOOD", "IFOOD RESTAURANTE CENTRO"),
        ("POSTO SHELL CENTRO", "PADARIA CENTRO"),
        ("PIX JOAO SILVA", "PIX MARIA SILVA"),
        ("NETFLIX.COM", "SPOTIFY"),
    ],
)
def test_similar_is_symmetric(a, b):
    assert similar(a, b) == similar(b, a)


def test_keys_similar_counts_distinct_tokens():
    assert keys_similar("uber_uber", "uber_trip") == keys_similar("uber_trip", "uber_uber")


def test_extract_merchant_name_strips_prefix_and_noise():
    assert extract_merchant_name("PIX JOAO DA SILVA 01/12/2024") == "JOAO SILVA"


def test_extract_merchant_name_keeps_four_words():
    assert extract_merchant_name("LOJA ALFA BETA GAMA DELTA") == "LOJA ALFA BETA GAMA"


def test_extract_merchant_name_fallback():
    assert extract_merchant_name("12345678") == "12345678"
    assert extract_merchant_name("") == ""
