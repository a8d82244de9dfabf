import pytest

from app.config.settings import settings
from app.models.game import GameScreen, Session
from app.services.errors import InsufficientPlayers, InvalidPlayers, InvalidTransition, StoreIOError
from app.services.game_engine import GameEngine
from app.services.session_sync import SessionSync

NAMES = ["Ana", "Bo", "Cy"]
ANA, BO, CY = 0, 1, 2


def _engine(word_pairs, rng, sync=None, round_cap=5):
    session = Session(session_id="test-engine", round_cap=round_cap)
    return GameEngine(session=session, sync=sync, word_pairs=word_pairs, rng=rng)


def _to_voting(engine):
    for i in range(len(engine.session.players)):
        engine.reveal_card(i)
    engine.all_cards_viewed()
    engine.open_voting()


def _vote_out(engine, target):
    """Tous les autres joueurs votent contre `target`, qui vote contre le premier autre."""
    others = [i for i in engine.active_indices() if i != target]
    for voter in others:
        engine.submit_vote(voter, target)
    engine.submit_vote(target, others[0])
    return engine.tally_votes()


def test_scenario_imposter_caught(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    assert engine.session.imposter_index == BO
    _to_voting(engine)

    result = _vote_out(engine, BO)

    assert result.screen == GameScreen.SCORING
    assert engine.session.last_tally.eliminated_index == BO
    assert engine.session.imposter_found is True
    assert [p.score for p in engine.session.players] == [10, 0, 10]
    with pytest.raises(InvalidTransition):
        engine.next_round()

    engine.end_game()
    assert engine.session.game_screen == GameScreen.GAME_OVER
    assert [p.score for p in engine.session.players] == [10, 0, 10]


def test_scenario_imposter_survives(word_pairs, scripted):
    # Le dernier tirage (Cy) n'est jamais consommé: l'imposteur reste Bo en manche 2.
    rng = scripted([0, BO, 0, CY])
    engine = _engine(word_pairs, rng, round_cap=2)
    engine.start_game(NAMES)
    _to_voting(engine)
    _vote_out(engine, ANA)

    assert engine.session.eliminated == {ANA}
    assert engine.session.imposter_found is False
    with pytest.raises(InvalidTransition):
        engine.end_game()

    engine.next_round()
    s = engine.session
    assert s.round_number == 2
    assert s.game_screen == GameScreen.CARD_VIEW
    assert s.eliminated == set() and s.votes == {} and s.revealed == set()
    assert s.imposter_index == BO
    assert s.cards[BO].is_imposter and s.cards[BO].word == "Dog"
    assert rng.values == [CY]

    _to_voting(engine)
    _vote_out(engine, CY)
    with pytest.raises(InvalidTransition):
        engine.next_round()

    engine.end_game()
    assert engine.session.game_screen == GameScreen.GAME_OVER
    assert [p.score for p in engine.session.players] == [0, 20, 0]


def test_tally_rejected_until_everyone_voted(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    _to_voting(engine)
    engine.submit_vote(ANA, BO)
    engine.submit_vote(CY, BO)
    before = engine.session.model_copy(deep=True)

    with pytest.raises(InvalidTransition) as excinfo:
        engine.tally_votes()

    assert excinfo.value.event == "tally_votes"
    assert excinfo.value.screen == "Voting"
    assert engine.session == before

    result = engine.tally_votes(force=True)
    assert result.screen == GameScreen.SCORING
    assert engine.session.last_tally.forced is True
    assert engine.session.last_tally.eliminated_index == BO


def test_tie_eliminates_nobody(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    _to_voting(engine)
    engine.submit_vote(ANA, BO)
    engine.submit_vote(BO, CY)
    engine.submit_vote(CY, ANA)

    engine.tally_votes()

    tally = engine.session.last_tally
    assert tally.tie is True
    assert tally.eliminated_index is None
    assert engine.session.eliminated == set()
    assert engine.session.imposter_found is False
    assert engine.can_continue()


def test_forced_tally_without_votes(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    _to_voting(engine)

    engine.tally_votes(force=True)

    assert engine.session.last_tally.tie is True
    assert engine.session.eliminated == set()


def test_last_vote_overwrites(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    _to_voting(engine)
    engine.submit_vote(ANA, CY)
    engine.submit_vote(ANA, BO)
    assert engine.session.votes == {ANA: BO}
    assert engine.pending_voters() == [BO, CY]


@pytest.mark.parametrize("voter,target", [(0, 0), (0, 9), (9, 0), (-1, 1)])
def test_invalid_votes(word_pairs, scripted, voter, target):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    _to_voting(engine)
    with pytest.raises(InvalidTransition):
        engine.submit_vote(voter, target)
    assert engine.session.votes == {}


def test_cards_must_all_be_viewed(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([2, CY]))
    engine.start_game(NAMES)
    assert engine.next_viewer() == ANA

    card = engine.reveal_card(ANA).payload["card"]
    assert card.word == "Sun" and not card.is_imposter
    assert engine.next_viewer() == BO
    with pytest.raises(InvalidTransition) as excinfo:
        engine.all_cards_viewed()
    assert "Bo" in str(excinfo.value)

    engine.reveal_card(BO)
    assert engine.reveal_card(CY).payload["card"].is_imposter
    assert engine.next_viewer() is None
    assert engine.all_cards_viewed().screen == GameScreen.DISCUSSION


@pytest.mark.parametrize(
    "names,error",
    [
        (["Ana", "Bo"], InsufficientPlayers),
        (["Ana", "Bo", "  "], InvalidPlayers),
        (["Ana", "Bo", "Ana"], InvalidPlayers),
        ([f"P{i}" for i in range(11)], InvalidPlayers),
    ],
)
def test_start_game_rejects_bad_names(word_pairs, names, error):
    engine = _engine(word_pairs, None)
    with pytest.raises(error):
        engine.start_game(names)
    assert engine.session.game_screen == GameScreen.SETUP
    assert engine.session.players == []


def test_start_game_trims_names(word_pairs):
    engine = _engine(word_pairs, None)
    engine.start_game([" Ana ", "Bo", "Cy "])
    assert [p.name for p in engine.session.players] == NAMES


@pytest.mark.parametrize(
    "event",
    ["all_cards_viewed", "open_voting", "tally_votes", "next_round", "end_game"],
)
def test_events_rejected_from_setup(word_pairs, event):
    engine = _engine(word_pairs, None)
    with pytest.raises(InvalidTransition) as excinfo:
        getattr(engine, event)()
    assert excinfo.value.screen == "Setup"
    assert engine.session.game_screen == GameScreen.SETUP


def test_start_game_rejected_once_started(word_pairs):
    engine = _engine(word_pairs, None)
    engine.start_game(NAMES)
    with pytest.raises(InvalidTransition):
        engine.start_game(NAMES)


def test_every_transition_is_persisted(word_pairs, scripted, sync, disk_backend):
    engine = _engine(word_pairs, scripted([0, BO]), sync=sync)
    engine.start_game(NAMES)

    stored = Session.from_json(disk_backend.get("test-engine"))
    assert stored.game_screen == GameScreen.CARD_VIEW

    engine.reveal_card(ANA)
    assert Session.from_json(disk_backend.get("test-engine")).revealed == {ANA}


class FailingBackend:
    name = "failing"

    def put(self, session_id, blob):
        raise StoreIOError("disque plein")


def test_persist_failure_keeps_transition(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]), sync=SessionSync(backend=FailingBackend()))

    result = engine.start_game(NAMES)

    assert result.persisted is False
    assert "disque plein" in result.warning
    assert engine.session.game_screen == GameScreen.CARD_VIEW


def test_reveal_card_reports_persist_failure(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]), sync=SessionSync(backend=FailingBackend()))
    engine.start_game(NAMES)

    result = engine.reveal_card(ANA)

    assert result.persisted is False
    assert "disque plein" in result.warning
    assert result.payload["card"].word == "Coffee"
    assert engine.session.revealed == {ANA}


def test_standings_sorted_by_score(word_pairs, scripted):
    engine = _engine(word_pairs, scripted([0, BO]))
    engine.start_game(NAMES)
    _to_voting(engine)
    _vote_out(engine, BO)

    standings = engine.standings()
    assert [row["name"] for row in standings] == ["Ana", "Cy", "Bo"]
    assert [row["rank"] for row in standings] == [1, 2, 3]


def test_new_game_allocates_new_session(word_pairs, scripted, sync, disk_backend):
    engine = GameEngine(session=sync.load_or_create(None), sync=sync, word_pairs=word_pairs,
                        rng=scripted([0, BO]))
    old_id = engine.session.session_id
    engine.start_game(NAMES)
    assert disk_backend.get(old_id) is not None

    result = engine.new_game()

    assert result.screen == GameScreen.SETUP
    assert engine.session.session_id != old_id
    assert engine.session.players == []
    assert disk_backend.get(old_id) is None


def test_new_game_can_archive(word_pairs, sync, disk_backend):
    engine = GameEngine(session=sync.load_or_create(None), sync=sync, word_pairs=word_pairs)
    old_id = engine.session.session_id
    engine.start_game(NAMES)

    engine.new_game(archive=True)

    assert disk_backend.get(old_id) is not None
    assert old_id in disk_backend.list()


def test_defaults_follow_current_settings(monkeypatch, disk_backend):
    monkeypatch.setattr(settings, "MAX_PLAYERS", 4)
    monkeypatch.setattr(settings, "IMPOSTER_CAUGHT_POINTS", 7)
    monkeypatch.setattr(settings, "ROUND_CAP", 2)

    engine = GameEngine(session=Session(session_id="test-engine"))

    assert engine.max_players == 4
    assert engine.caught_points == 7
    assert SessionSync(backend=disk_backend).round_cap == 2
    with pytest.raises(InvalidPlayers):
        engine.start_game(["Ana", "Bo", "Cy", "Dee", "Eve"])
