"""H.264 sequence and picture parameter sets."""

from __future__ import annotations

from dataclasses import dataclass

from .golomb import GolombReader, GolombWriter

SPS_HEADER = 0x67
PPS_HEADER = 0x68

_HIGH_PROFILES = frozenset(
    {100, 110, 122, 244, 44, 83, 86, 118, 128, 138, 139, 134, 135}
)


def encode_profile(idc: int, iop: int) -> str:
    """Return the short profile name for profile_idc and constraint flags."""
    if idc == 0x42 and iop & 0b01001111 == 0b01000000:
        return "CB"
    if idc == 0x4D and iop & 0b10001111 == 0b10000000:
        return "CB"
    if idc == 0x58 and iop & 0b11001111 == 0b11000000:
        return "CB"
    if idc == 0x42 and iop & 0b01001111 == 0:
        return "B"
    if idc == 0x58 and iop & 0b11001111 == 0b10000000:
        return "B"
    if idc == 0x4D and iop & 0b10101111 == 0:
        return "M"
    if idc == 0x58 and iop & 0b11001111 == 0:
        return "E"
    if idc == 0x64 and iop == 0:
        return "H"
    if idc == 0x6E and iop == 0:
        return "H10"
    return ""


def decode_profile(profile: str) -> tuple[int, int]:
    """Return (profile_idc, constraint flags) for a short profile name."""
    return {
        "CB": (0x42, 0b01000000),
        "B": (0x42, 0),
        "M": (0x4D, 0),
        "E": (0x58, 0),
        "H": (0x64, 0),
    }.get(profile, (0, 0))


@dataclass
class SPS:
    """Sequence parameter set: profile, level and picture size."""

    profile: str = ""
    profile_idc: int = 0
    profile_iop: int = 0
    level_idc: int = 0
    width: int = 0
    height: int = 0

    @classmethod
    def from_profile(cls, profile: str, level: int, width: int, height: int) -> "SPS":
        idc, iop = decode_profile(profile)
        return cls(
            profile=profile,
            profile_idc=idc,
            profile_iop=iop,
            level_idc=level,
            width=width,
            height=height,
        )

    @classmethod
    def parse(cls, data: bytes) -> "SPS":
        """Parse an SPS NAL unit; raise ValueError on bad or truncated data."""
        reader = GolombReader(data)
        try:
            return cls._read(reader)
        except EOFError as exc:
            raise ValueError("truncated SPS data") from exc

    @classmethod
    def _read(cls, r: GolombReader) -> "SPS":
        if r.read_byte() & 0x1F != 7:
            raise ValueError("not SPS data")

        sps = cls()
        sps.profile_idc = r.read_byte()
        sps.profile_iop = r.read_byte()
        sps.level_idc = r.read_byte()
        sps.profile = encode_profile(sps.profile_idc, sps.profile_iop)

        r.read_ue_golomb()  # seq_parameter_set_id

        if sps.profile_idc in _HIGH_PROFILES:
            if r.read_ue_golomb() == 3:  # chroma_format_idc
                r.read_bit()  # separate_colour_plane_flag
                lists = 12
            else:
                lists = 8
            r.read_ue_golomb()  # bit_depth_luma_minus8
            r.read_ue_golomb()  # bit_depth_chroma_minus8
            r.read_bit()  # qpprime_y_zero_transform_bypass_flag
            if r.read_bit():  # seq_scaling_matrix_present_flag
                for _ in range(lists):
                    if r.read_bit():
                        raise ValueError("SPS scaling lists are not supported")

        r.read_ue_golomb()  # log2_max_frame_num_minus4

        poc_type = r.read_ue_golomb()
        if poc_type == 0:
            r.read_ue_golomb()  # log2_max_pic_order_cnt_lsb_minus4
        elif poc_type == 1:
            always_zero = r.read_bit()
            r.read_se_golomb()  # offset_for_non_ref_pic
            r.read_se_golomb()  # offset_for_top_to_bottom_field
            r.read_ue_golomb()  # num_ref_frames_in_pic_order_cnt_cycle
            for _ in range(always_zero):
                r.read_se_golomb()

        r.read_ue_golomb()  # num_ref_frames
        r.read_bit()  # gaps_in_frame_num_value_allowed_flag

        sps.width = (((r.read_ue_golomb() + 1) & 0xFFFF) << 4) & 0xFFFF
        sps.height = (((r.read_ue_golomb() + 1) & 0xFFFF) << 4) & 0xFFFF

        if r.read_bit() == 0:  # frame_mbs_only_flag
            r.read_bit()  # mb_adaptive_frame_field_flag

        r.read_bit()  # direct_8x8_inference_flag

        if r.read_bit():  # frame_cropping_flag
            sps.width = (sps.width - (r.read_ue_golomb() << 1)) & 0xFFFF
            sps.width = (sps.width - (r.read_ue_golomb() << 1)) & 0xFFFF
            sps.height = (sps.height - (r.read_ue_golomb() << 1)) & 0xFFFF
            sps.height = (sps.height - (r.read_ue_golomb() << 1)) & 0xFFFF

        if r.read_bit():  # vui_parameters_present_flag
            if r.read_bit():  # aspect_ratio_info_present_flag
                r.read_bits(8)  # aspect_ratio_idc; extended SAR is not read
            if r.read_bit():  # overscan_info_present_flag
                r.read_bit()
            if r.read_bit():  # video_signal_type_present_flag
                r.read_bits(3)
                r.read_bit()
                if r.read_bit():  # colour_description_present_flag
                    r.read_bits(8)
                    r.read_bits(8)
                    r.read_bits(8)
            if r.read_bit():  # chroma_loc_info_present_flag
                r.read_ue_golomb()
                r.read_ue_golomb()
            if r.read_bit():  # timing_info_present_flag
                r.read_bits(32)
                r.read_bits(32)
                r.read_bit()
            if r.read_bit():  # nal_hrd_parameters_present_flag
                return sps
            if r.read_bit():  # vcl_hrd_parameters_present_flag
                return sps
            r.read_bit()  # pic_struct_present_flag
            if r.read_bit():  # bitstream_restriction_flag
                r.read_bit()
                for _ in range(6):
                    r.read_ue_golomb()

        r.read_bit()  # rbsp_stop_one_bit
        return sps

    def marshal(self) -> bytes:
        """Encode a typical camera SPS with this profile, level and size."""
        w = GolombWriter()
        w.write_byte(SPS_HEADER)
        w.write_byte(self.profile_idc)
        w.write_byte(self.profile_iop)
        w.write_byte(self.level_idc)

        w.write_ue_golomb(0)  # seq_parameter_set_id
        w.write_ue_golomb(0)  # log2_max_frame_num_minus4
        w.write_ue_golomb(0)  # pic_order_cnt_type
        w.write_ue_golomb(0)  # log2_max_pic_order_cnt_lsb_minus4
        w.write_ue_golomb(1)  # num_ref_frames
        w.write_bit(0)  # gaps_in_frame_num_value_allowed_flag

        w.write_ue_golomb((((self.width >> 4) & 0xFF) - 1) & 0xFF)
        w.write_ue_golomb((((self.height >> 4) & 0xFF) - 1) & 0xFF)

        w.write_bit(1)  # frame_mbs_only_flag
        w.write_bit(1)  # direct_8x8_inference_flag
        w.write_bit(0)  # frame_cropping_flag
        w.write_bit(0)  # vui_parameters_present_flag
        w.write_bit(1)  # rbsp_stop_one_bit
        return w.to_bytes()


@dataclass(frozen=True)
class PPS:
    """Picture parameter set; only validated, its fields are not kept."""

    @classmethod
    def parse(cls, data: bytes) -> "PPS":
        """Validate a PPS NAL unit; raise ValueError on bad or truncated data."""
        r = GolombReader(data)
        try:
            if r.read_byte() & 0x1F != 8:
                raise ValueError("not PPS data")
            r.read_ue_golomb()  # pic_parameter_set_id
            r.read_ue_golomb()  # seq_parameter_set_id
            r.read_bit()  # entropy_coding_mode_flag
            r.read_bit()  # bottom_field_pic_order_in_frame_present_flag
            if r.read_ue_golomb() > 0:  # num_slice_groups_minus1
                return cls()
            r.read_ue_golomb()  # num_ref_idx_l0_default_active_minus1
            r.read_ue_golomb()  # num_ref_idx_l1_default_active_minus1
            r.read_bit()  # weighted_pred_flag
            r.read_bits(2)  # weighted_bipred_idc
            r.read_se_golomb()  # pic_init_qp_minus26
            r.read_se_golomb()  # pic_init_qs_minus26
            r.read_se_golomb()  # chroma_qp_index_offset
            r.read_bit()  # deblocking_filter_control_present_flag
            r.read_bit()  # constrained_intra_pred_flag
            r.read_bit()  # redundant_pic_cnt_present_flag
        except EOFError as exc:
            raise ValueError("truncated PPS data") from exc
        return cls()

    def marshal(self) -> bytes:
        """Encode a typical camera PPS."""
        w = GolombWriter()
        w.write_byte(PPS_HEADER)
        w.write_ue_golomb(0)  # pic_parameter_set_id
        w.write_ue_golomb(0)  # seq_parameter_set_id
        w.write_bit(1)  # entropy_coding_mode_flag
        w.write_bit(0)  # bottom_field_pic_order_in_frame_present_flag
        w.write_ue_golomb(0)  # num_slice_groups_minus1
        w.write_ue_golomb(0)  # num_ref_idx_l0_default_active_minus1
        w.write_ue_golomb(0)  # num_ref_idx_l1_default_active_minus1
        w.write_bit(0)  # weighted_pred_flag
        w.write_bits(0, 2)  # weighted_bipred_idc
        w.write_se_golomb(0)  # pic_init_qp_minus26
        w.write_se_golomb(0)  # pic_init_qs_minus26
        w.write_se_golomb(0)  # chroma_qp_index_offset
        w.write_bit(1)  # deblocking_filter_control_present_flag
        w.write_bit(0)  # constrained_intra_pred_flag
        w.write_bit(0)  # redundant_pic_cnt_present_flag
        w.write_bit(1)  # rbsp_trailing_bits
        return w.to_bytes()