"""
Integration tests for the complete launch pipeline.

Runs deploy, wiring, funding, vesting and verification against the
simulated chain with the full Atlas catalog.
"""

from dataclasses import replace
from unittest.mock import Mock, patch

import pytest

from atlas_launch import catalog
from atlas_launch.allocation.units import parse_units
from atlas_launch.config.defaults import DeployParams, VestingParams
from atlas_launch.deploy.models import ModuleState
from atlas_launch.errors import DeploymentError, OverAllocationError, WiringError
from atlas_launch.pipeline import LaunchPipeline
from atlas_launch.verification.base import VerificationOutcome, VerificationResponse
from atlas_launch.verification.retry import VerificationRetryController

from conftest import ADMIN, ALICE, BOB, PAYMENT_TOKEN, address

ALL_MODULES = {
    "AtlasToken", "Vesting", "Presale", "Launchpad", "AtlasBridge", "AtlasVault", "WETH",
    "AtlasFactory", "AtlasRouter", "RewardDistributorV2", "LPRewardSink", "StakingRewardSink",
}


@pytest.fixture
def launch_settings(settings, checkpoint_path):
    return replace(settings, deploy=DeployParams(checkpoint_path=str(checkpoint_path)))


@pytest.fixture
def pipeline(launch_settings, chain, checkpoint):
    return LaunchPipeline(launch_settings, chain=chain, checkpoint=checkpoint)


class TestDeployPhase:
    """Test deployment and wiring together."""

    def test_fresh_deploy(self, pipeline, chain, checkpoint):
        result = pipeline.deploy()

        assert result.succeeded
        assert set(checkpoint.addresses()) == ALL_MODULES
        assert all(r.applied for r in result.detail["grants"])

        token = checkpoint.get("AtlasToken").address
        bridge = checkpoint.get("AtlasBridge").address
        vault = checkpoint.get("AtlasVault").address
        assert chain.read(token, "hasRole", ["BRIDGE_ROLE", bridge])
        assert chain.read(token, "hasRole", ["MINTER_ROLE", vault])
        factory = checkpoint.get("AtlasFactory").address
        assert chain.state.settings[(factory, "setFeeTo")] == (ADMIN,)

    def test_init_args_use_recorded_addresses(self, pipeline, checkpoint):
        pipeline.deploy()

        addresses = checkpoint.addresses()
        presale = checkpoint.get("Presale")
        assert presale.init_args == (
            addresses["AtlasToken"], addresses["Vesting"], PAYMENT_TOKEN, 50000000, ADMIN
        )
        assert checkpoint.get("AtlasRouter").init_args == (
            addresses["AtlasFactory"], addresses["WETH"]
        )

    def test_second_deploy_is_noop(self, pipeline, chain):
        pipeline.deploy()
        deploys = len([e for e in chain.submitted if e[0] == "deploy"])

        result = pipeline.deploy()

        report = result.detail["report"]
        assert result.succeeded
        assert report.modules_in(ModuleState.SKIPPED) == list(report.runs)
        assert len([e for e in chain.submitted if e[0] == "deploy"]) == deploys

    def test_external_weth_not_deployed(self, launch_settings, chain, checkpoint):
        weth = address(0xE7)
        settings = replace(launch_settings,
                           deploy=replace(launch_settings.deploy, weth_address=weth))

        result = LaunchPipeline(settings, chain=chain, checkpoint=checkpoint).deploy()

        assert result.succeeded
        assert not checkpoint.has("WETH")
        assert checkpoint.get("AtlasRouter").init_args[1] == weth

    def test_required_failure_skips_wiring(self, pipeline, chain, checkpoint):
        chain.inject_failure("presale/Presale")

        result = pipeline.deploy()

        assert not result.succeeded
        assert isinstance(result.error, DeploymentError)
        assert result.detail.aborted_by == "Presale"
        assert chain.calls_to("grantRole") == []
        assert not checkpoint.has("Presale")

    def test_optional_module_failure_still_wires(self, pipeline, chain, checkpoint):
        chain.inject_failure("launchpad/Launchpad")

        result = pipeline.deploy()

        report = result.detail["report"]
        assert not result.succeeded
        assert report.state_of("Launchpad") == ModuleState.FAILED
        assert report.required_failures == []
        assert all(r.applied for r in result.detail["grants"])

    def test_optional_grant_failure_fails_phase(self, pipeline, chain):
        chain.inject_failure("setStakingSink")

        result = pipeline.deploy()

        assert not result.succeeded
        assert result.detail["report"].succeeded
        assert [r.applied for r in result.detail["grants"]] == [True, True, True, True, False]

    def test_required_grant_failure(self, pipeline, chain):
        chain.inject_failure("setFeeTo")

        result = pipeline.deploy()

        assert not result.succeeded
        assert isinstance(result.error, WiringError)

    def test_single_module_deploy(self, pipeline, chain, checkpoint):
        result = pipeline.deploy(module="Vesting")

        assert set(checkpoint.addresses()) == {"AtlasToken", "Vesting"}
        assert result.detail["grants"] == []
        assert result.succeeded

    def test_cancelled_deploy(self, pipeline, chain):
        pipeline.cancel()

        result = pipeline.deploy()

        assert not result.succeeded
        assert result.detail.cancelled
        assert chain.submitted == []


class TestFundPhase:
    """Test supply funding and vesting."""

    def test_funds_default_allocations(self, pipeline, chain, checkpoint):
        pipeline.deploy()

        result = pipeline.fund()

        assert result.succeeded
        token = checkpoint.get("AtlasToken").address
        presale = checkpoint.get("Presale").address
        lp_sink = checkpoint.get("LPRewardSink").address
        assert chain.balance_of(token, presale) == parse_units("300000000")
        assert chain.balance_of(token, lp_sink) == parse_units("1000000000")
        assert chain.balance_of(token, chain.default_sender) == parse_units("8700000000")

    def test_fund_twice_is_noop(self, pipeline, chain):
        pipeline.deploy()
        pipeline.fund()
        submitted = len(chain.submitted)

        assert pipeline.fund().succeeded
        assert len(chain.submitted) == submitted

    def test_fund_twice_with_vesting_is_noop(self, launch_settings, chain, checkpoint):
        settings = replace(launch_settings, vesting=VestingParams(
            beneficiaries=(ALICE, BOB), amounts=("100", "200.5")
        ))
        pipeline = LaunchPipeline(settings, chain=chain, checkpoint=checkpoint)
        pipeline.deploy()
        assert pipeline.fund().succeeded
        submitted = len(chain.submitted)

        result = pipeline.fund()

        assert result.succeeded
        assert result.detail["vesting"] is None
        assert len(chain.submitted) == submitted

    def test_cancelled_fund_skips_remaining_work(self, launch_settings, chain, checkpoint):
        settings = replace(launch_settings, vesting=VestingParams(
            beneficiaries=(ALICE,), amounts=("100",)
        ))
        pipeline = LaunchPipeline(settings, chain=chain, checkpoint=checkpoint)
        pipeline.deploy()
        submitted = len(chain.submitted)

        pipeline.cancel()
        result = pipeline.fund()

        assert not result.succeeded
        assert not result.detail["plan"].fully_funded
        assert result.detail["vesting"] is None
        assert len(chain.submitted) == submitted

    def test_over_allocation_blocks_funding(self, launch_settings, chain, checkpoint):
        settings = replace(launch_settings, allocation=replace(
            launch_settings.allocation, total_supply="1000", presale="400", lp_rewards="700"
        ))
        pipeline = LaunchPipeline(settings, chain=chain, checkpoint=checkpoint)
        pipeline.deploy()
        submitted = len(chain.submitted)

        result = pipeline.fund()

        assert not result.succeeded
        assert isinstance(result.error, OverAllocationError)
        assert len(chain.submitted) == submitted

    def test_fund_before_deploy_fails_cleanly(self, pipeline, chain):
        result = pipeline.fund()
        assert not result.succeeded
        assert chain.submitted == []

    def test_vesting_batch(self, launch_settings, chain, checkpoint):
        settings = replace(launch_settings, vesting=VestingParams(
            beneficiaries=(ALICE, BOB), amounts=("100", "200.5"), start=1_700_000_000
        ))
        pipeline = LaunchPipeline(settings, chain=chain, checkpoint=checkpoint)
        pipeline.deploy()

        result = pipeline.fund()

        assert result.succeeded
        assert result.detail["vesting"] is not None
        vesting = checkpoint.get("Vesting").address
        schedule = chain.state.schedules[vesting][ALICE]
        assert schedule == (ALICE, parse_units("100"), 1_700_000_000, 0,
                            settings.vesting_duration_seconds)
        assert chain.balance_of(checkpoint.get("AtlasToken").address, vesting) == \
            parse_units("300.5")


class TestVerifyPhase:
    """Test verification through the pipeline."""

    def test_verifies_every_recorded_module(self, launch_settings, chain, checkpoint):
        verifier = Mock()
        verifier.verify.return_value = VerificationResponse(VerificationOutcome.SUCCESS)
        pipeline = LaunchPipeline(launch_settings, chain=chain, checkpoint=checkpoint,
                                  verifier=verifier)
        pipeline.deploy()

        with patch.object(VerificationRetryController, "_wait"):
            result = pipeline.verify()

        assert result.succeeded
        modules = [r.module for r in result.detail.results]
        assert modules[0] == "AtlasToken"
        assert set(modules) == ALL_MODULES

    def test_verification_failure_leaves_state_alone(self, launch_settings, chain, checkpoint):
        verifier = Mock()
        verifier.verify.return_value = VerificationResponse(VerificationOutcome.FATAL, "nope")
        pipeline = LaunchPipeline(launch_settings, chain=chain, checkpoint=checkpoint,
                                  verifier=verifier)
        pipeline.deploy()
        before = checkpoint.addresses()

        with patch.object(VerificationRetryController, "_wait"):
            result = pipeline.verify()

        assert not result.succeeded
        assert checkpoint.addresses() == before

    def test_cancelled_verify_stops_early(self, launch_settings, chain, checkpoint):
        verifier = Mock()
        verifier.verify.return_value = VerificationResponse(VerificationOutcome.SUCCESS)
        pipeline = LaunchPipeline(launch_settings, chain=chain, checkpoint=checkpoint,
                                  verifier=verifier)
        pipeline.deploy()
        verifier.verify.side_effect = lambda address, args: (
            pipeline.cancel(), VerificationResponse(VerificationOutcome.SUCCESS)
        )[1]

        result = pipeline.verify()

        assert not result.succeeded
        assert result.detail.cancelled
        assert verifier.verify.call_count == 1

    def test_verify_requires_url(self, pipeline):
        result = pipeline.verify()
        assert not result.succeeded
        assert "VERIFY_API_URL" in str(result.error)


def test_catalog_grants_reference_registered_modules(launch_settings):
    registry = catalog.build_registry(launch_settings)
    for grant in catalog.default_grants(launch_settings):
        assert grant.target_module in registry
        assert grant.grantee_module in registry or grant.grantee_module == ADMIN
