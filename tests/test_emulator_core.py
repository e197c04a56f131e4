"""
Synacor VM: Core Instruction Tests

Every test builds its program from hand-assembled words, so nothing
outside the package is needed. Register references are written with the
R0..R7 constants (32768..32775).
"""

import io
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from synacor_vm.emu import VirtualMachine, StopReason
from synacor_vm.cpu import alu
from synacor_vm.errors import (
    DivisionByZero, InputExhausted, InvalidOpcode, InvalidOperand, PCOutOfRange,
)
from synacor_vm.periph.console import Console

R0, R1, R2, R3, R4, R5, R6, R7 = range(32768, 32776)

HALT, SET, PUSH, POP, EQ, GT, JMP, JT, JF, ADD, MULT, MOD, AND, OR, NOT, \
    RMEM, WMEM, CALL, RET, OUT, IN, NOOP = range(22)


def _vm(words, stdin: str = "") -> VirtualMachine:
    """VM with words poked at address 0 and in-memory console streams."""
    vm = VirtualMachine(console=Console(io.StringIO(stdin), io.StringIO()))
    vm.mem.load_words(words)
    return vm


def _image(words) -> bytes:
    return b''.join(w.to_bytes(2, 'little') for w in words)


# ═══════════════════════════════════════════════
# Test Group 1: Operand resolution
# ═══════════════════════════════════════════════

class TestOperandResolution:

    def test_literals_pass_through(self):
        vm = _vm([])
        for value in list(range(0, 32768, 251)) + [32767]:
            vm.mem.write(500, value)
            assert vm.mem.read_operand(500) == value

    def test_register_reference_resolves_one_level(self):
        vm = _vm([])
        for r in range(8):
            vm.regs[r] = 1000 + r
            vm.mem.write(600, R0 + r)
            assert vm.mem.read_operand(600) == 1000 + r
            assert vm.mem.read_raw(600) == R0 + r

    def test_register_holding_register_value_is_not_followed(self):
        """A register slot's contents are data, never another reference."""
        vm = _vm([])
        vm.regs[0] = R1
        vm.regs[1] = 77
        vm.mem.write(600, R0)
        assert vm.mem.read_operand(600) == R1

    def test_invalid_raw_operand_reports_pc(self):
        vm = _vm([OUT, 40000])
        with pytest.raises(InvalidOperand) as exc:
            vm.execute(0)
        assert exc.value.value == 40000
        assert exc.value.pc == 0


# ═══════════════════════════════════════════════
# Test Group 2: Data movement
# ═══════════════════════════════════════════════

class TestDataMovement:

    def test_set_register_from_literal(self):
        vm = _vm([SET, R0, 1234])
        assert vm.execute(0) == 3
        assert vm.regs[0] == 1234

    def test_set_register_from_register(self):
        vm = _vm([SET, R1, R0])
        vm.regs[0] = 5
        vm.execute(0)
        assert vm.regs[1] == 5
        assert vm.regs[0] == 5

    def test_set_destination_is_not_resolved(self):
        """SET r0, ... writes r0 itself even when r0 holds an address."""
        vm = _vm([SET, R0, 9])
        vm.regs[0] = 300
        vm.execute(0)
        assert vm.regs[0] == 9
        assert vm.mem.read_raw(300) == 0

    def test_rmem_reads_memory_at_resolved_address(self):
        vm = _vm([RMEM, R0, R1])
        vm.regs[1] = 300
        vm.mem.write(300, 55)
        assert vm.execute(0) == 3
        assert vm.regs[0] == 55

    def test_rmem_copies_raw_word(self):
        vm = _vm([RMEM, R0, 300])
        vm.mem.write(300, R2)
        vm.regs[2] = 999
        vm.execute(0)
        assert vm.regs[0] == R2

    def test_wmem_destination_is_resolved(self):
        """WMEM's first operand is an address by value, unlike every other destination."""
        vm = _vm([WMEM, R0, 42])
        vm.regs[0] = 200
        assert vm.execute(0) == 3
        assert vm.mem.read_raw(200) == 42
        assert vm.regs[0] == 200

    def test_wmem_literal_address(self):
        vm = _vm([WMEM, 100, R1])
        vm.regs[1] = 7
        vm.execute(0)
        assert vm.mem.read_raw(100) == 7


# ═══════════════════════════════════════════════
# Test Group 3: Arithmetic and logic
# ═══════════════════════════════════════════════

class TestArithmetic:

    def test_add(self):
        vm = _vm([ADD, R0, 10, 20])
        assert vm.execute(0) == 4
        assert vm.regs[0] == 30

    def test_add_wraps(self):
        vm = _vm([ADD, R0, 32767, 1, ADD, R1, 32000, 800])
        vm.execute(0)
        vm.execute(4)
        assert vm.regs[0] == 0
        assert vm.regs[1] == 32

    def test_add_uses_32768_not_32678(self):
        vm = _vm([ADD, R0, 32700, 0])
        vm.execute(0)
        assert vm.regs[0] == 32700

    def test_alu_reduces_through_to_word(self):
        assert alu.to_word(32768) == 0
        assert alu.add(32767, 32767) == alu.to_word(65534) == 32766
        assert alu.mult(32767, 32767) == alu.to_word(32767 * 32767) == 1

    def test_mult_wraps(self):
        vm = _vm([MULT, R0, 32767, 2, MULT, R1, 32000, 800])
        vm.execute(0)
        vm.execute(4)
        assert vm.regs[0] == 32766
        assert vm.regs[1] == 8192

    def test_results_stay_in_word_range(self):
        vm = _vm([ADD, R0, R1, R2, MULT, R3, R1, R2])
        for b, c in [(32767, 32767), (16384, 16384), (12345, 30000)]:
            vm.regs[1], vm.regs[2] = b, c
            vm.execute(0)
            vm.execute(4)
            assert 0 <= vm.regs[0] <= 32767
            assert 0 <= vm.regs[3] <= 32767

    def test_mod(self):
        vm = _vm([MOD, R0, 100, 31])
        assert vm.execute(0) == 4
        assert vm.regs[0] == 7

    def test_mod_by_zero_fails_fast(self):
        vm = _vm([MOD, R0, 100, R1])
        before = vm.mem.snapshot()
        with pytest.raises(DivisionByZero) as exc:
            vm.execute(0)
        assert exc.value.pc == 0
        assert vm.mem.snapshot() == before

    def test_and_or(self):
        vm = _vm([AND, R0, 100, 31, OR, R1, 100, 31])
        vm.execute(0)
        vm.execute(4)
        assert vm.regs[0] == 4
        assert vm.regs[1] == 127

    @pytest.mark.parametrize("value, expected", [
        (0, 32767),
        (32767, 0),
        (100, 32667),
        (0x5555, 0x2AAA),
    ])
    def test_not_is_15_bit(self, value, expected):
        vm = _vm([NOT, R0, value])
        assert vm.execute(0) == 3
        assert vm.regs[0] == expected

    def test_eq(self):
        vm = _vm([EQ, R0, 2, 2, EQ, R1, 2, 3])
        vm.regs[1] = 9
        vm.execute(0)
        vm.execute(4)
        assert vm.regs[0] == 1
        assert vm.regs[1] == 0

    def test_gt(self):
        vm = _vm([GT, R0, 2, 1, GT, R1, 2, 2, GT, R2, 2, 3])
        vm.execute(0)
        vm.execute(4)
        vm.execute(8)
        assert vm.regs.as_list()[:3] == [1, 0, 0]

    def test_gt_is_unsigned(self):
        vm = _vm([GT, R0, 32767, 1])
        vm.execute(0)
        assert vm.regs[0] == 1


# ═══════════════════════════════════════════════
# Test Group 4: Stack and control flow
# ═══════════════════════════════════════════════

class TestStack:

    def test_push_pop(self):
        vm = _vm([PUSH, 10, POP, R0])
        assert vm.execute(0) == 2
        assert vm.mem.peek_stack() == (10,)
        assert vm.execute(2) == 4
        assert vm.regs[0] == 10
        assert vm.mem.stack_depth == 0

    def test_push_resolves_register(self):
        vm = _vm([PUSH, R3])
        vm.regs[3] = 321
        vm.execute(0)
        assert vm.mem.peek_stack() == (321,)

    def test_lifo_order(self):
        vm = _vm([PUSH, 1, PUSH, 2, PUSH, 3, POP, R0, POP, R1, POP, R2, HALT])
        assert vm.run() is StopReason.HALT
        assert vm.regs.as_list()[:3] == [3, 2, 1]

    def test_pop_empty_stack_halts(self):
        vm = _vm([POP, R0])
        vm.regs[0] = 55
        assert vm.execute(0) == -1
        assert vm.regs[0] == 55

    def test_ret_empty_stack_halts(self):
        vm = _vm([RET])
        assert vm.execute(0) == -1

    def test_pop_empty_stack_stops_run_as_halt(self):
        vm = _vm([NOOP, POP, R0, OUT, 65])
        assert vm.run() is StopReason.HALT
        assert vm.console.output == b""


class TestControlFlow:

    def test_halt(self):
        vm = _vm([HALT])
        assert vm.execute(0) == -1

    def test_noop(self):
        vm = _vm([NOOP])
        assert vm.execute(0) == 1

    def test_jmp(self):
        vm = _vm([JMP, 100])
        assert vm.execute(0) == 100

    def test_jmp_through_register(self):
        vm = _vm([JMP, R4])
        vm.regs[4] = 1234
        assert vm.execute(0) == 1234

    def test_jt(self):
        vm = _vm([JT, 0, 100, JT, 1, 100])
        assert vm.execute(0) == 3
        assert vm.execute(3) == 100

    def test_jf(self):
        vm = _vm([JF, 1, 100, JF, 0, 100])
        assert vm.execute(0) == 3
        assert vm.execute(3) == 100

    def test_call_ret_round_trip(self):
        vm = _vm([CALL, 10])
        vm.mem.load_words([RET], base_addr=10)
        assert vm.execute(0) == 10
        assert vm.mem.peek_stack() == (2,)
        assert vm.execute(10) == 2
        assert vm.mem.stack_depth == 0

    def test_call_ret_program(self):
        # 0: CALL 5 / 2: OUT 'b' / 4: HALT / 5: OUT 'a' / 7: RET
        vm = _vm([CALL, 5, OUT, ord('b'), HALT, OUT, ord('a'), RET])
        assert vm.run() is StopReason.HALT
        assert vm.console.output == b"ab"


# ═══════════════════════════════════════════════
# Test Group 5: Character I/O
# ═══════════════════════════════════════════════

class TestIO:

    def test_out_literal(self):
        vm = _vm([OUT, ord('T')])
        assert vm.execute(0) == 2
        assert vm.console.output == b"T"
        assert vm.console._output.getvalue() == "T"

    def test_out_register_truncates_to_8_bits(self):
        vm = _vm([OUT, R0])
        vm.regs[0] = 0x141
        vm.execute(0)
        assert vm.console.output == b"A"

    def test_in_echo_line(self):
        vm = _vm([IN, R0], stdin="AB\n")
        codes = []
        for _ in range(3):
            assert vm.execute(0) == 2
            codes.append(vm.regs[0])
        assert codes == [65, 66, 10]

    def test_in_to_memory(self):
        vm = _vm([IN, 100], stdin="x\n")
        vm.execute(0)
        assert vm.mem.read_raw(100) == ord('x')

    def test_in_appends_missing_terminator(self):
        vm = _vm([IN, R0], stdin="AB")
        codes = []
        for _ in range(3):
            vm.execute(0)
            codes.append(vm.regs[0])
        assert codes == [65, 66, 10]

    def test_in_end_of_input(self):
        vm = _vm([IN, R0], stdin="")
        with pytest.raises(InputExhausted):
            vm.execute(0)

    def test_echo_program(self):
        # read 3 chars, write each back
        prog = [IN, R0, OUT, R0] * 3 + [HALT]
        vm = _vm(prog, stdin="hi\n")
        assert vm.run() is StopReason.HALT
        assert vm.console.output == b"hi\n"

    def test_input_cursor_is_per_instance(self):
        a = _vm([IN, R0], stdin="aa\n")
        b = _vm([IN, R0], stdin="bb\n")
        a.execute(0)
        b.execute(0)
        a.execute(0)
        assert a.regs[0] == ord('a')
        assert b.regs[0] == ord('b')


# ═══════════════════════════════════════════════
# Test Group 6: Faults
# ═══════════════════════════════════════════════

class TestFaults:

    def test_invalid_opcode(self):
        vm = _vm([255])
        with pytest.raises(InvalidOpcode) as exc:
            vm.execute(0)
        assert exc.value.pc == 0
        assert exc.value.value == 255

    def test_invalid_opcode_stops_run_and_leaves_memory(self):
        vm = _vm([SET, R0, 1, 255, SET, R0, 2])
        with pytest.raises(InvalidOpcode) as exc:
            vm.run()
        assert exc.value.pc == 3
        snap = vm.mem.snapshot()
        assert vm.regs[0] == 1
        assert vm.pc == 3
        with pytest.raises(InvalidOpcode):
            vm.step()
        assert vm.mem.snapshot() == snap

    def test_fall_through_past_end_of_memory(self):
        vm = _vm([])
        vm.mem.load_words([NOOP], base_addr=32767)
        vm.regs[0] = OUT
        vm.regs[1] = 65
        vm.pc = 32767
        assert vm.step() is None
        assert vm.pc == 32768
        with pytest.raises(PCOutOfRange) as exc:
            vm.step()
        assert exc.value.pc == 32768
        assert vm.pc == 32768
        assert vm.console.output == b""

    def test_operands_past_end_of_memory(self):
        vm = _vm([])
        vm.mem.load_words([SET, R1], base_addr=32766)
        vm.regs[0] = 9
        with pytest.raises(PCOutOfRange):
            vm.execute(32766)
        assert vm.regs[1] == 0

    @pytest.mark.parametrize("pc", [32768, 32775, 40000])
    def test_pc_in_register_space(self, pc):
        vm = _vm([])
        with pytest.raises(PCOutOfRange):
            vm.execute(pc)

    def test_last_word_halt_is_fine(self):
        vm = _vm([])
        vm.mem.load_words([HALT], base_addr=32767)
        assert vm.execute(32767) == -1

    def test_call_bad_target_leaves_stack(self):
        vm = _vm([CALL, 40000])
        with pytest.raises(InvalidOperand) as exc:
            vm.execute(0)
        assert exc.value.pc == 0
        assert vm.mem.peek_stack() == ()

    def test_pop_bad_destination_leaves_stack(self):
        vm = _vm([PUSH, 7, POP, 40000])
        vm.execute(0)
        with pytest.raises(InvalidOperand) as exc:
            vm.execute(2)
        assert exc.value.pc == 2
        assert vm.mem.peek_stack() == (7,)


# ═══════════════════════════════════════════════
# Test Group 7: Run loop
# ═══════════════════════════════════════════════

class TestRunLoop:

    def test_program_image_scenario(self):
        """SET r0,4; ADD r0,r0,r0; ADD r0,r0,53; OUT r0; HALT → prints '='"""
        image = _image([SET, R0, 4, ADD, R0, R0, R0, ADD, R0, R0, 53, OUT, R0, HALT])
        vm = VirtualMachine(console=Console(io.StringIO(), io.StringIO()))
        vm.load_binary(image)
        assert vm.mem.program_length == 14
        assert vm.run() is StopReason.HALT
        assert vm.regs[0] == 61
        assert vm.console.output == b"="
        assert vm.halted
        assert vm.steps == 5

    def test_load_binary_from_file(self, tmp_path):
        path = tmp_path / "prog.bin"
        path.write_bytes(_image([OUT, ord('!'), HALT]))
        vm = VirtualMachine(console=Console(io.StringIO(), io.StringIO()))
        vm.load_binary(path)
        vm.run()
        assert vm.console.output == b"!"

    def test_timeout(self):
        vm = _vm([JMP, 0])
        assert vm.run(max_steps=50) is StopReason.TIMEOUT
        assert vm.steps == 50
        assert vm.pc == 0

    def test_expected_output(self):
        vm = _vm([OUT, ord('o'), OUT, ord('k'), JMP, 0])
        assert vm.run(max_steps=1000, expected_output=b"ok") is StopReason.DONE
        assert vm.pc == 4

    def test_breakpoint_and_resume(self):
        vm = _vm([NOOP, NOOP, OUT, ord('x'), HALT])
        vm.add_breakpoint(2)
        assert vm.run() is StopReason.BREAK
        assert vm.pc == 2
        assert vm.console.output == b""
        assert vm.run() is StopReason.HALT
        assert vm.console.output == b"x"

    def test_remove_breakpoint(self):
        vm = _vm([NOOP, HALT])
        vm.add_breakpoint(1)
        vm.remove_breakpoint(1)
        assert vm.run() is StopReason.HALT

    def test_step_after_halt(self):
        vm = _vm([HALT])
        assert vm.step() is StopReason.HALT
        assert vm.step() is StopReason.HALT
        assert vm.steps == 1

    def test_trace(self):
        vm = _vm([SET, R0, 3, HALT])
        vm.enable_trace()
        vm.run()
        trace = vm.get_trace().splitlines()
        assert len(trace) == 2
        assert "SET    r0 3" in trace[0]
        assert "r0=0000" in trace[0]
        assert "HALT" in trace[1]
        assert "r0=0003" in trace[1]
        vm.clear_trace()
        assert vm.get_trace() == ""

    def test_reset(self):
        vm = _vm([PUSH, 1, OUT, 65, HALT])
        vm.run()
        vm.reset()
        assert vm.pc == 0
        assert vm.mem.stack_depth == 0
        assert vm.console.output == b""
        assert vm.mem.read_raw(0) == 0
