import random

import pytest

from backend.holdem.cards import parse_cards
from backend.holdem.engine import InvalidActionError, RoundController, TableFlowError, UnknownPlayerError
from backend.holdem.evaluator import HandCategory, HandResult, evaluate_hand
from backend.holdem.state import Player, PlayerKind, PlayerStatus, Stage


def make_controller(chips: int | list[int] = 2000, count: int = 6, dealer: int = 0, **kwargs) -> RoundController:
    stacks = chips if isinstance(chips, list) else [chips] * count
    players = [
        Player(
            id=f"p{index}",
            name=f"Player {index}",
            kind=PlayerKind.HUMAN if index == 0 else PlayerKind.AUTOMATED,
            chips=stack,
        )
        for index, stack in enumerate(stacks)
    ]
    controller = RoundController(players, small_blind=10, big_blind=20, rng=random.Random(7), **kwargs)
    controller.start_round(dealer)
    return controller


def act(controller: RoundController, action: str, amount: int | None = None):
    player = controller.current_player()
    assert player is not None
    return controller.submit_action(player.id, action, amount)


def table_chips(controller: RoundController) -> int:
    assert controller.state is not None
    return sum(player.chips for player in controller.players) + controller.state.pot


def test_initial_round_posts_blinds_and_sets_first_actor() -> None:
    controller = make_controller()
    state = controller.get_round_state()
    players = controller.players

    assert (players[1].chips, players[1].street_bet) == (1990, 10)
    assert (players[2].chips, players[2].street_bet) == (1980, 20)
    assert state.turn_index == 3
    assert state.pot == 30
    assert state.street_high == 20
    assert state.min_raise == 20
    assert state.stage == "preflop"
    assert state.status == "in_progress"
    assert all(len(player.hand) == 2 for player in players)
    assert len(controller.deck) == 52 - 12


def test_invalid_action_leaves_state_unchanged() -> None:
    controller = make_controller()
    before = controller.get_round_state()

    with pytest.raises(InvalidActionError) as excinfo:
        controller.submit_action("p3", "check")
    assert {item.type.value for item in excinfo.value.legal_actions} >= {"fold", "call", "raise", "all_in"}

    with pytest.raises(InvalidActionError):
        controller.submit_action("p4", "call")
    with pytest.raises(InvalidActionError):
        controller.submit_action("p3", "dance")
    with pytest.raises(InvalidActionError):
        controller.submit_action("p3", "raise", 30)

    assert controller.get_round_state() == before


def test_unknown_player_is_rejected() -> None:
    controller = make_controller()
    with pytest.raises(UnknownPlayerError):
        controller.submit_action("ghost", "fold")


def test_big_blind_keeps_its_option_and_flop_starts_left_of_dealer() -> None:
    controller = make_controller()
    for _ in range(5):
        act(controller, "call")

    state = controller.get_round_state()
    assert state.stage == "preflop"
    assert state.turn_index == 2

    state = act(controller, "check")
    assert state.stage == "flop"
    assert len(state.community_cards) == 3
    assert state.turn_index == 1
    assert state.street_high == 0
    assert state.pot == 120
    assert all(player.street_bet == 0 for player in controller.players)
    assert len(controller.deck) + 2 * 6 + len(state.community_cards) == 52


def test_a_check_does_not_end_the_street() -> None:
    controller = make_controller()
    for _ in range(5):
        act(controller, "call")
    act(controller, "check")

    state = act(controller, "check")
    assert state.stage == "flop"
    assert state.turn_index == 2

    for _ in range(4):
        state = act(controller, "check")
        assert state.stage == "flop"
    state = act(controller, "check")
    assert state.stage == "turn"
    assert len(state.community_cards) == 4


def test_raise_reopens_action_for_players_who_checked() -> None:
    controller = make_controller()
    for _ in range(5):
        act(controller, "call")
    act(controller, "check")

    act(controller, "check")  # seat 1
    state = act(controller, "raise", 40)  # seat 2
    assert state.street_high == 40
    for _ in range(4):
        state = act(controller, "call")  # seats 3, 4, 5, 0
    assert state.stage == "flop"
    assert state.turn_index == 1

    state = act(controller, "call")
    assert state.stage == "turn"


def test_min_raise_tracks_the_last_raise_size() -> None:
    controller = make_controller()

    state = act(controller, "raise", 60)
    assert (state.street_high, state.min_raise) == (60, 40)

    with pytest.raises(InvalidActionError):
        controller.submit_action("p4", "raise", 90)

    state = act(controller, "raise", 100)
    assert (state.street_high, state.min_raise) == (100, 40)

    state = act(controller, "raise", 200)
    assert (state.street_high, state.min_raise) == (200, 100)


def test_raise_without_amount_uses_the_minimum() -> None:
    controller = make_controller()
    state = act(controller, "raise")
    assert state.street_high == 40
    assert controller.players[3].street_bet == 40


def test_overcommitted_raise_becomes_all_in() -> None:
    controller = make_controller(chips=[2000, 2000, 2000, 100, 2000, 2000])
    state = act(controller, "raise", 500)
    seat = controller.players[3]

    assert seat.status == PlayerStatus.ALL_IN
    assert seat.chips == 0
    assert seat.street_bet == 100
    assert state.street_high == 100
    assert state.min_raise == 80
    assert state.turn_index == 4


def test_short_call_goes_all_in_without_raising_the_high_bet() -> None:
    controller = make_controller(chips=[2000, 2000, 2000, 15, 2000, 2000])
    state = act(controller, "call")
    seat = controller.players[3]

    assert seat.status == PlayerStatus.ALL_IN
    assert seat.chips == 0
    assert seat.street_bet == 15
    assert state.street_high == 20
    assert state.pot == 45


def test_short_all_in_moves_high_bet_but_not_min_raise() -> None:
    controller = make_controller(chips=[2000, 2000, 2000, 2000, 150, 2000])
    act(controller, "raise", 100)
    state = act(controller, "all_in")

    assert state.street_high == 150
    assert state.min_raise == 80
    assert controller.players[4].status == PlayerStatus.ALL_IN


def test_fold_keeps_chips_and_leaves_rotation() -> None:
    controller = make_controller()
    act(controller, "fold")
    folded = controller.players[3]
    assert folded.status == PlayerStatus.FOLDED
    assert folded.chips == 2000

    for _ in range(4):
        act(controller, "call")
    act(controller, "check")
    assert controller.state.stage == Stage.FLOP

    act(controller, "check")
    state = act(controller, "check")
    assert state.turn_index == 4
    assert folded.chips == 2000


def test_everyone_folds_to_the_big_blind() -> None:
    def never(hole, board):
        raise AssertionError("evaluator must not run when the pot is uncontested")

    controller = make_controller(evaluator=never)
    before = table_chips(controller)
    for _ in range(5):
        state = act(controller, "fold")

    assert state.status == "round_complete"
    assert state.stage == "showdown"
    assert state.pot == 0
    assert state.result is not None
    assert state.result.by_fold is True
    assert state.result.winner_ids == ["p2"]
    assert controller.players[2].chips == 2010
    assert controller.players[2].last_action_label == "Winner"
    assert sum(player.chips for player in controller.players) == before
    with pytest.raises(TableFlowError):
        controller.award_pot(controller.players[3])
    assert controller.players[3].chips == 2000


def test_checked_down_hand_conserves_chips() -> None:
    controller = make_controller()
    before = table_chips(controller)
    for _ in range(5):
        act(controller, "call")
    act(controller, "check")
    while not controller.round_complete:
        act(controller, "check")

    state = controller.get_round_state()
    assert state.stage == "showdown"
    assert len(state.community_cards) == 5
    assert state.pot == 0
    assert state.result is not None
    assert state.result.by_fold is False
    assert state.result.hand_category is not None
    assert sum(player.chips for player in controller.players) == before
    with pytest.raises(InvalidActionError):
        controller.submit_action("p1", "check")


def test_heads_up_all_in_runs_out_the_board() -> None:
    controller = make_controller(chips=[100, 100], count=2)
    assert controller.state.turn_index == 1

    act(controller, "all_in")
    state = act(controller, "call")

    assert state.status in {"round_complete", "game_over"}
    assert state.stage == "showdown"
    assert len(state.community_cards) == 5
    assert len(controller.deck) == 52 - 4 - 5
    assert sum(player.chips for player in controller.players) == 200


def test_busted_players_are_skipped_when_dealing() -> None:
    controller = make_controller(chips=[2000, 2000, 0], count=3)
    busted = controller.players[2]

    assert busted.status == PlayerStatus.BUSTED
    assert busted.hand == []
    assert len(controller.deck) == 52 - 4
    assert controller.players[1].street_bet == 10
    assert controller.players[0].street_bet == 20


def test_short_big_blind_still_prices_the_street_at_the_big_blind() -> None:
    controller = make_controller(chips=[2000, 2000, 5, 2000], count=4)
    state = controller.get_round_state()

    assert controller.players[2].status == PlayerStatus.ALL_IN
    assert controller.players[2].street_bet == 5
    assert state.street_high == 20
    assert state.turn_index == 3
    call = next(action for action in state.legal_actions if action.type == "call")
    assert call.to_call == 20

    act(controller, "call")
    act(controller, "call")
    state = act(controller, "call")

    assert state.stage == "flop"
    assert state.pot == 65
    assert controller.players[1].chips == 1980


def test_table_size_is_bounded_by_the_deck() -> None:
    def seats(count: int) -> list[Player]:
        return [Player(id=f"p{index}", name=f"P{index}", kind=PlayerKind.AUTOMATED, chips=100) for index in range(count)]

    controller = RoundController(seats(23), rng=random.Random(1))
    controller.start_round(0)
    assert len(controller.deck) == 52 - 46

    with pytest.raises(ValueError):
        RoundController(seats(24))
    with pytest.raises(ValueError):
        RoundController(seats(1))


def test_side_pot_caps_what_a_short_all_in_can_win() -> None:
    controller = make_controller(count=3)
    p0, p1, p2 = controller.players
    controller.state.community_cards = parse_cards("2♣ 7♦ 9♥ J♠ K♣")
    for player, hand, committed, chips, status in (
        (p0, "A♠ A♥", 100, 0, PlayerStatus.ALL_IN),
        (p1, "K♦ 3♥", 300, 700, PlayerStatus.ACTIVE),
        (p2, "Q♦ 3♠", 300, 700, PlayerStatus.ACTIVE),
    ):
        player.hand = parse_cards(hand)
        player.round_commitment = committed
        player.chips = chips
        player.status = status
    controller.state.pot = 700

    result = controller.showdown()

    assert [(award.amount, award.winners) for award in result.awards] == [(300, [0]), (400, [1])]
    assert (p0.chips, p1.chips, p2.chips) == (300, 1100, 700)
    assert controller.state.pot == 0
    with pytest.raises(TableFlowError):
        controller.showdown()
    assert controller.result is result


def test_exact_tie_splits_the_pot_with_odd_chip_left_of_dealer() -> None:
    controller = make_controller(count=3)
    p0, p1, p2 = controller.players
    controller.state.community_cards = parse_cards("K♣ Q♦ 7♠ 4♥ 2♦")
    for player, hand, committed, status in (
        (p0, "A♠ 9♣", 100, PlayerStatus.ACTIVE),
        (p1, "A♦ 9♥", 100, PlayerStatus.ACTIVE),
        (p2, "3♣ 5♦", 21, PlayerStatus.FOLDED),
    ):
        player.hand = parse_cards(hand)
        player.round_commitment = committed
        player.chips = 1000
        player.status = status
    controller.state.pot = 221

    result = controller.showdown()

    assert result.awards[0].winners == [1, 0]
    assert (p0.chips, p1.chips, p2.chips) == (1110, 1111, 1000)
    assert p0.last_action_label == p1.last_action_label == "Split Pot"


def test_end_or_continue_rotates_the_dealer() -> None:
    controller = make_controller()
    for _ in range(5):
        act(controller, "fold")

    assert controller.end_or_continue() is None
    state = controller.get_round_state()
    assert state.round_number == 2
    assert state.dealer_index == 1
    assert state.stage == "preflop"
    assert state.pot == 30
    assert controller.players[2].street_bet == 10
    assert controller.players[3].street_bet == 20
    assert state.turn_index == 4


def test_end_or_continue_requires_a_finished_round() -> None:
    controller = make_controller()
    with pytest.raises(TableFlowError):
        controller.end_or_continue()


def test_game_ends_when_one_stack_remains() -> None:
    players_holder: list[Player] = []

    def rigged(hole, board):
        result = evaluate_hand(hole, board)
        if hole is players_holder[0].hand:
            return HandResult(category=HandCategory.HIGH_CARD, score=0, best_five=result.best_five)
        return result

    controller = RoundController(
        [
            Player(id="p0", name="Short", kind=PlayerKind.HUMAN, chips=20),
            Player(id="p1", name="Deep", kind=PlayerKind.AUTOMATED, chips=2000),
        ],
        rng=random.Random(3),
        evaluator=rigged,
    )
    players_holder.append(controller.players[0])
    controller.start_round(0)

    assert controller.players[0].status == PlayerStatus.ALL_IN
    state = controller.submit_action("p1", "call")

    assert state.status == "game_over"
    assert state.game_winner_id == "p1"
    assert controller.players[1].chips == 2020
    assert controller.end_or_continue() is controller.players[1]
    with pytest.raises(TableFlowError):
        controller.initialize_round(1)


def test_viewer_only_sees_own_hole_cards_until_showdown() -> None:
    controller = make_controller()
    state = controller.get_round_state(viewer_id="p0")

    assert state.players[0].cards_visible is True
    assert "??" not in state.players[0].hand
    assert all(player.hand == ["??", "??"] for player in state.players[1:])
    assert state.legal_actions == []

    turn_view = controller.get_round_state(viewer_id="p3")
    assert {action.type for action in turn_view.legal_actions} == {"fold", "call", "raise", "all_in"}
