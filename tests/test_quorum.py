import unittest

from custody import (
    Environment, ExternalCallFailure, InvalidAddress, InvalidQuorum, InvalidState, ManualClock,
    NotFound, NULL_ADDRESS, PrincipalKey, ProposalState, QuorumEngine, Unauthorized, encode_call
)


class ReentrantTarget:
    """Contract that tries to execute the proposal calling it a second time"""

    def __init__(self, engine, caller):
        self.engine = engine
        self.caller = caller
        self.proposal_id = None
        self.errors = []
        self.calls = 0

    def handle_call(self, env, sender, value, payload):
        self.calls += 1
        try:
            self.engine.execute(self.caller, self.proposal_id)
        except InvalidState as e:
            self.errors.append(e)
        return b"ok"


class RevertingTarget:
    def handle_call(self, env, sender, value, payload):
        raise RuntimeError("target reverted")


class TestQuorumEngine(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures"""
        self.env = Environment(ManualClock(start=100))
        self.keys = [PrincipalKey() for _ in range(4)]
        self.a, self.b, self.c, self.d = [k.address for k in self.keys]
        self.target = PrincipalKey().address

        self.engine = QuorumEngine(self.env, [self.a, self.b, self.c], 2)
        self.env.native.mint(self.engine.address, 1_000)

    def balance(self, address):
        return self.env.native.balance_of(address)

    def test_propose_does_not_confirm(self):
        """New proposals start pending with no confirmations"""
        first = self.engine.propose(self.a, self.target, 10)
        second = self.engine.propose(self.b, self.target, 20)

        self.assertEqual((first, second), (0, 1))
        proposal = self.engine.get_proposal(first)
        self.assertEqual(proposal.confirmations, 0)
        self.assertFalse(proposal.executed)
        self.assertEqual(self.engine.state_of(first), ProposalState.PENDING)

    def test_non_principal_cannot_propose(self):
        with self.assertRaises(Unauthorized):
            self.engine.propose(self.d, self.target, 10)
        self.assertEqual(self.engine.proposal_count(), 0)

    def test_null_target_rejected(self):
        with self.assertRaises(InvalidAddress):
            self.engine.propose(self.a, NULL_ADDRESS, 10)

    def test_quorum_reaching_confirmation_executes(self):
        """A proposes, A and B confirm, execution happens on B's call; C is too late"""
        pid = self.engine.propose(self.a, self.target, 10)

        self.engine.confirm(self.a, pid)
        self.assertEqual(self.engine.state_of(pid), ProposalState.PENDING)
        self.assertEqual(self.balance(self.target), 0)

        proposal = self.engine.confirm(self.b, pid)
        self.assertTrue(proposal.executed)
        self.assertEqual(proposal.confirmations, 2)
        self.assertEqual(self.engine.state_of(pid), ProposalState.EXECUTED)
        self.assertEqual(self.balance(self.target), 10)
        self.assertEqual(self.balance(self.engine.address), 990)

        with self.assertRaises(InvalidState):
            self.engine.confirm(self.c, pid)
        with self.assertRaises(InvalidState):
            self.engine.execute(self.a, pid)
        self.assertEqual(len(self.env.events.filter("Execution")), 1)

    def test_double_confirmation_fails(self):
        pid = self.engine.propose(self.a, self.target, 10)
        self.engine.confirm(self.a, pid)
        with self.assertRaises(InvalidState):
            self.engine.confirm(self.a, pid)
        self.assertEqual(self.engine.get_proposal(pid).confirmations, 1)

    def test_non_principal_cannot_confirm(self):
        pid = self.engine.propose(self.a, self.target, 10)
        with self.assertRaises(Unauthorized):
            self.engine.confirm(self.d, pid)
        with self.assertRaises(Unauthorized):
            self.engine.execute(self.d, pid)

    def test_unknown_proposal(self):
        with self.assertRaises(NotFound):
            self.engine.confirm(self.a, 7)
        with self.assertRaises(NotFound):
            self.engine.revoke(self.a, 7)
        with self.assertRaises(NotFound):
            self.engine.execute(self.a, 7)
        with self.assertRaises(NotFound):
            self.engine.get_proposal(-1)

    def test_revoke(self):
        pid = self.engine.propose(self.a, self.target, 10)
        self.engine.confirm(self.a, pid)
        self.engine.revoke(self.a, pid)

        self.assertEqual(self.engine.get_proposal(pid).confirmations, 0)
        self.assertFalse(self.engine.has_confirmed(pid, self.a))
        with self.assertRaises(InvalidState):
            self.engine.revoke(self.a, pid)
        with self.assertRaises(InvalidState):
            self.engine.revoke(self.b, pid)

    def test_revoke_after_execution_fails(self):
        pid = self.engine.propose(self.a, self.target, 10)
        self.engine.confirm(self.a, pid)
        self.engine.confirm(self.b, pid)
        with self.assertRaises(InvalidState):
            self.engine.revoke(self.a, pid)

    def test_revoke_leaves_other_confirmations(self):
        engine = QuorumEngine(self.env, [self.a, self.b, self.c], 3)
        pid = engine.propose(self.a, self.target)
        engine.confirm(self.a, pid)
        engine.confirm(self.b, pid)
        engine.revoke(self.a, pid)
        self.assertEqual(engine.confirmations_of(pid), [self.b])

    def test_count_matches_confirmation_matrix(self):
        """Running count equals the number of principals marked as confirmed"""
        engine = QuorumEngine(self.env, [self.a, self.b, self.c], 3)
        pid = engine.propose(self.a, self.target)
        steps = [
            (engine.confirm, self.a),
            (engine.confirm, self.b),
            (engine.revoke, self.a),
            (engine.revoke, self.b),
            (engine.confirm, self.c),
            (engine.confirm, self.a),
        ]
        for action, principal in steps:
            action(principal, pid)
            proposal = engine.get_proposal(pid)
            self.assertEqual(proposal.confirmations, len(engine.confirmations_of(pid)))
        self.assertEqual(engine.confirmations_of(pid), [self.a, self.c])
        self.assertEqual(engine.state_of(pid), ProposalState.PENDING)

    def test_execute_requires_quorum(self):
        pid = self.engine.propose(self.a, self.target, 10)
        self.engine.confirm(self.a, pid)
        with self.assertRaises(InvalidState):
            self.engine.execute(self.a, pid)
        self.assertFalse(self.engine.get_proposal(pid).executed)

    def test_failed_execution_can_be_retried(self):
        """A failed call re-opens the proposal; execute() succeeds once funded"""
        pid = self.engine.propose(self.a, self.target, 5_000)
        self.engine.confirm(self.a, pid)
        proposal = self.engine.confirm(self.b, pid)

        self.assertFalse(proposal.executed)
        self.assertEqual(self.engine.state_of(pid), ProposalState.AUTHORIZED)
        failures = self.env.events.filter("ExecutionFailure")
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].data['reason'], "external_call_failure")

        with self.assertRaises(ExternalCallFailure) as ctx:
            self.engine.execute(self.a, pid)
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(self.engine.state_of(pid), ProposalState.AUTHORIZED)

        self.env.native.mint(self.engine.address, 10_000)
        self.engine.execute(self.b, pid)
        self.assertEqual(self.engine.state_of(pid), ProposalState.EXECUTED)
        self.assertEqual(self.balance(self.target), 5_000)

        # Explicit execution won the race; the late confirmation is rejected
        with self.assertRaises(InvalidState):
            self.engine.confirm(self.c, pid)
        with self.assertRaises(InvalidState):
            self.engine.execute(self.a, pid)

    def test_reverting_target_rolls_back_value(self):
        bad = RevertingTarget()
        self.env.deploy(bad)
        pid = self.engine.propose(self.a, bad.address, 100)
        self.engine.confirm(self.a, pid)
        self.engine.confirm(self.b, pid)

        self.assertFalse(self.engine.get_proposal(pid).executed)
        self.assertEqual(self.balance(self.engine.address), 1_000)
        self.assertEqual(self.balance(bad.address), 0)

    def test_reentrant_execution_is_blocked(self):
        """The target calling execute() again sees the proposal as executed"""
        target = ReentrantTarget(self.engine, self.c)
        self.env.deploy(target)
        pid = self.engine.propose(self.a, target.address, 1, b"\x01")
        target.proposal_id = pid

        self.engine.confirm(self.a, pid)
        self.engine.confirm(self.b, pid)

        self.assertEqual(target.calls, 1)
        self.assertEqual(len(target.errors), 1)
        self.assertTrue(self.engine.get_proposal(pid).executed)
        self.assertEqual(len(self.env.events.filter("Execution")), 1)

    def test_invalid_construction(self):
        with self.assertRaises(InvalidQuorum):
            QuorumEngine(self.env, [self.a, self.b], 0)
        with self.assertRaises(InvalidQuorum):
            QuorumEngine(self.env, [self.a, self.b], 3)
        with self.assertRaises(InvalidQuorum):
            QuorumEngine(self.env, [], 1)
        with self.assertRaises(InvalidAddress):
            QuorumEngine(self.env, [self.a, NULL_ADDRESS], 1)
        with self.assertRaises(InvalidState):
            QuorumEngine(self.env, [self.a, self.a], 1)


class TestRegistryChanges(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures"""
        self.env = Environment(ManualClock(start=100))
        self.keys = [PrincipalKey() for _ in range(4)]
        self.a, self.b, self.c, self.d = [k.address for k in self.keys]
        self.target = PrincipalKey().address
        self.engine = QuorumEngine(self.env, [self.a, self.b, self.c], 2)

    def run_proposal(self, op, confirmers=None, **args):
        pid = self.engine.propose(self.a, self.engine.address, 0, encode_call(op, **args))
        for principal in confirmers or (self.a, self.b):
            self.engine.confirm(principal, pid)
        return pid

    def test_direct_registry_call_rejected(self):
        """Registry changes cannot bypass the proposal workflow"""
        payload = encode_call("add_principal", principal=self.d)
        with self.assertRaises(Unauthorized):
            self.engine.handle_call(self.env, self.a, 0, payload)
        with self.assertRaises(ExternalCallFailure):
            self.env.call(self.a, self.engine.address, 0, payload)
        self.assertFalse(self.engine.is_principal(self.d))

    def test_add_principal_and_change_quorum(self):
        pid = self.run_proposal("add_principal", principal=self.d)
        self.assertTrue(self.engine.get_proposal(pid).executed)
        self.assertEqual(self.engine.principals(), [self.a, self.b, self.c, self.d])

        self.run_proposal("change_quorum", quorum=3)
        self.assertEqual(self.engine.quorum, 3)
        self.assertEqual(len(self.env.events.filter("QuorumChange")), 1)

    def test_remove_principal_lowers_quorum(self):
        """Dropping membership below quorum lowers quorum in the same operation"""
        self.run_proposal("change_quorum", quorum=3)
        self.run_proposal("remove_principal", confirmers=(self.a, self.b, self.c), principal=self.c)

        self.assertEqual(self.engine.principals(), [self.a, self.b])
        self.assertEqual(self.engine.quorum, 2)
        self.assertEqual(self.env.events.filter("QuorumChange")[-1].data['quorum'], 2)

    def test_removed_principal_confirmations_dropped(self):
        pending = self.engine.propose(self.a, self.target)
        self.engine.confirm(self.c, pending)

        self.run_proposal("remove_principal", principal=self.c)

        self.assertEqual(self.engine.get_proposal(pending).confirmations, 0)
        self.assertEqual(self.engine.confirmations_of(pending), [])
        self.assertEqual(self.engine.quorum, 2)

    def test_invalid_quorum_change(self):
        """Quorum above membership or zero fails and leaves the proposal authorized"""
        pid = self.run_proposal("change_quorum", quorum=4)
        self.assertFalse(self.engine.get_proposal(pid).executed)
        self.assertEqual(self.env.events.filter("ExecutionFailure")[-1].data['reason'], "invalid_quorum")
        with self.assertRaises(InvalidQuorum):
            self.engine.execute(self.a, pid)

        pid = self.run_proposal("change_quorum", quorum=0)
        with self.assertRaises(InvalidQuorum):
            self.engine.execute(self.a, pid)
        self.assertEqual(self.engine.quorum, 2)

    def test_cannot_remove_last_principal(self):
        engine = QuorumEngine(self.env, [self.a], 1)
        pid = engine.propose(self.a, engine.address, 0, encode_call("remove_principal", principal=self.a))
        engine.confirm(self.a, pid)
        with self.assertRaises(InvalidQuorum):
            engine.execute(self.a, pid)
        self.assertEqual(engine.principals(), [self.a])

    def test_remove_unknown_principal(self):
        pid = self.run_proposal("remove_principal", principal=self.d)
        with self.assertRaises(NotFound):
            self.engine.execute(self.a, pid)

    def test_replace_principal(self):
        self.run_proposal("replace_principal", old=self.c, new=self.d)
        self.assertEqual(self.engine.principals(), [self.a, self.b, self.d])
        self.assertFalse(self.engine.is_principal(self.c))
        self.assertEqual(self.engine.quorum, 2)

    def test_bad_registry_requests(self):
        pid = self.run_proposal("add_principal", principal=self.b)
        with self.assertRaises(InvalidState):
            self.engine.execute(self.a, pid)

        pid = self.run_proposal("add_principal", principal=NULL_ADDRESS)
        with self.assertRaises(InvalidAddress):
            self.engine.execute(self.a, pid)

        pid = self.run_proposal("self_destruct")
        with self.assertRaises(NotFound):
            self.engine.execute(self.a, pid)

        pid = self.run_proposal("add_principal", who=self.d)
        with self.assertRaises(InvalidState):
            self.engine.execute(self.a, pid)

        self.assertEqual(self.engine.principals(), [self.a, self.b, self.c])


class TestSignedConfirmation(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures"""
        self.env = Environment(ManualClock(start=100))
        self.keys = [PrincipalKey() for _ in range(3)]
        self.outsider = PrincipalKey()
        self.engine = QuorumEngine(self.env, [k.address for k in self.keys], 2)
        self.target = PrincipalKey().address
        self.pid = self.engine.propose(self.keys[0].address, self.target)

    def test_relayed_signature_confirms(self):
        key = self.keys[1]
        signature = key.sign_digest(self.engine.proposal_digest(self.pid))
        self.engine.confirm_signed(self.pid, key.public_key_hex, signature)
        self.assertTrue(self.engine.has_confirmed(self.pid, key.address))

    def test_signature_from_other_key_rejected(self):
        digest = self.engine.proposal_digest(self.pid)
        signature = self.keys[2].sign_digest(digest)
        with self.assertRaises(Unauthorized):
            self.engine.confirm_signed(self.pid, self.keys[1].public_key_hex, signature)
        self.assertEqual(self.engine.get_proposal(self.pid).confirmations, 0)

    def test_signature_for_other_proposal_rejected(self):
        other = self.engine.propose(self.keys[0].address, self.target, 0, b"other")
        signature = self.keys[1].sign_digest(self.engine.proposal_digest(other))
        with self.assertRaises(Unauthorized):
            self.engine.confirm_signed(self.pid, self.keys[1].public_key_hex, signature)

    def test_outsider_signature_rejected(self):
        signature = self.outsider.sign_digest(self.engine.proposal_digest(self.pid))
        with self.assertRaises(Unauthorized):
            self.engine.confirm_signed(self.pid, self.outsider.public_key_hex, signature)

    def test_malformed_public_key_rejected(self):
        signature = self.keys[1].sign_digest(self.engine.proposal_digest(self.pid))
        with self.assertRaises(InvalidAddress):
            self.engine.confirm_signed(self.pid, "not-a-key", signature)
        with self.assertRaises(InvalidAddress):
            self.engine.confirm_signed(self.pid, "abcd", signature)
        self.assertEqual(self.engine.get_proposal(self.pid).confirmations, 0)


if __name__ == '__main__':
    unittest.main()
