from salesdash.schema import ColumnRoles, find_header, resolve_roles

PLATFORM_HEADERS = [f"col_{i}" for i in range(32)]
PLATFORM_HEADERS[1] = "Data da Venda"
PLATFORM_HEADERS[7] = "Nome do Produto"
PLATFORM_HEADERS[11] = "Valor da Venda"
PLATFORM_HEADERS[29] = "utm_campaign"
PLATFORM_HEADERS[30] = "utm_term"


def test_hint_wins_over_name_match():
    headers = ["produto", "whatever", "valor"]
    assert find_header(headers, ["produto"], index_hint=1) == "whatever"


def test_hint_out_of_range_falls_back_to_names():
    headers = ["Produto", "Valor"]
    assert find_header(headers, ["produto"], index_hint=7) == "Produto"


def test_empty_header_at_hint_is_skipped():
    headers = ["Produto", ""]
    assert find_header(headers, ["produto"], index_hint=1) == "Produto"


def test_exact_match_beats_earlier_substring_match():
    headers = ["Valor da Venda Bruto", "valor"]
    assert find_header(headers, ["valor"]) == "valor"


def test_substring_match_is_case_insensitive_and_first_wins():
    headers = ["ID", "Nome do PRODUTO", "Produto Secundario"]
    assert find_header(headers, ["produto"]) == "Nome do PRODUTO"


def test_candidate_order_does_not_override_header_order():
    headers = ["campanha", "utm_campaign"]
    assert find_header(headers, ["utm_campaign", "campanha"]) == "campanha"


def test_unresolved_role_is_none():
    assert find_header(["a", "b"], ["produto"]) is None


def test_resolve_roles_with_platform_layout():
    roles = resolve_roles(PLATFORM_HEADERS)
    assert roles == ColumnRoles(
        date="Data da Venda",
        product="Nome do Produto",
        revenue="Valor da Venda",
        campaign="utm_campaign",
        term="utm_term",
    )
    assert roles.unresolved() == []
    assert roles.categorical_filter_columns() == ["Nome do Produto", "utm_campaign", "utm_term"]


def test_resolve_roles_by_name_only():
    roles = resolve_roles(["date", "product", "revenue"], position_hints=False)
    assert (roles.date, roles.product, roles.revenue) == ("date", "product", "revenue")
    assert roles.unresolved() == ["campaign", "term"]


def test_short_header_list_uses_position_hints_when_enabled():
    roles = resolve_roles(["date", "product", "revenue"])
    # index 1 exists, so the date role lands on the second column
    assert roles.date == "product"
